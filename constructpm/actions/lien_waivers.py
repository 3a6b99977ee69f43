from typing import List

from sqlalchemy.orm import Session

from constructpm.actions.common import bad_request, forbidden, get_phase, not_found, require_user, validate
from constructpm.core.permissions import can
from constructpm.db.models.finance import WAIVER_STATUSES, LienWaiver
from constructpm.db.models.user import User
from constructpm.schemas import LienWaiverCreate
from constructpm.utils.activity import log_activity


def list_waivers(db: Session, user: User, phase_id: int) -> List[LienWaiver]:
    phase = get_phase(db, user, phase_id)
    return db.query(LienWaiver).filter(LienWaiver.phase_id == phase.id).order_by(LienWaiver.created_at.desc()).all()


def _get_waiver(db: Session, user: User, waiver_id: int) -> LienWaiver:
    require_user(user)
    waiver = db.query(LienWaiver).filter(LienWaiver.id == waiver_id).first()
    if not waiver:
        raise not_found("Lien waiver")
    get_phase(db, user, waiver.phase_id)
    return waiver


def create_waiver(db: Session, user: User, phase_id: int, **data) -> LienWaiver:
    require_user(user)
    if not can(user.role, "update", "phase"):
        raise forbidden()
    phase = get_phase(db, user, phase_id)
    payload = validate(LienWaiverCreate, **data)

    waiver = LienWaiver(phase_id=phase.id, created_by_id=user.id, status="PENDING", **payload.model_dump())
    db.add(waiver)
    db.commit()
    db.refresh(waiver)

    log_activity(
        db, user, "LIEN_WAIVER_CREATED", f"Lien waiver from {waiver.vendor_name} added to {phase.name}",
        project_id=phase.project_id, data={"waiverId": waiver.id, "phaseId": phase.id},
    )
    return waiver


def update_waiver_status(db: Session, user: User, waiver_id: int, status: str) -> LienWaiver:
    """Approve or reject. Approval marks the waiver notarized."""
    require_user(user)
    if not can(user.role, "manage", "phase"):
        raise forbidden()
    if status not in WAIVER_STATUSES:
        raise bad_request("Invalid status")
    waiver = _get_waiver(db, user, waiver_id)

    waiver.status = status
    if status == "APPROVED":
        waiver.notarized = True
    db.commit()
    return waiver


def delete_waiver(db: Session, user: User, waiver_id: int) -> None:
    require_user(user)
    if not can(user.role, "update", "phase"):
        raise forbidden()
    waiver = _get_waiver(db, user, waiver_id)
    db.delete(waiver)
    db.commit()
