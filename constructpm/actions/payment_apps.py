from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from constructpm.actions.common import bad_request, forbidden, get_phase, not_found, require_user, validate
from constructpm.core.permissions import can
from constructpm.db.models.finance import PAYMENT_APP_STATUSES, PaymentApplication
from constructpm.db.models.user import User
from constructpm.schemas import PaymentApplicationCreate
from constructpm.utils.activity import log_activity


def current_payment_due(work_completed: float, materials_stored: float, retainage: float, previous_payments: float) -> float:
    return round(work_completed + materials_stored - retainage - previous_payments, 2)


def list_applications(db: Session, user: User, phase_id: int) -> List[PaymentApplication]:
    phase = get_phase(db, user, phase_id)
    return db.query(PaymentApplication).filter(PaymentApplication.phase_id == phase.id)\
        .order_by(PaymentApplication.number.desc()).all()


def phase_totals(applications: List[PaymentApplication]) -> dict:
    return {
        "scheduled": max((a.scheduled_value or 0 for a in applications), default=0),
        "billed": sum(a.current_due or 0 for a in applications if a.status != "REJECTED"),
        "paid": sum(a.current_due or 0 for a in applications if a.status == "PAID"),
    }


def _get_application(db: Session, user: User, application_id: int) -> PaymentApplication:
    require_user(user)
    application = db.query(PaymentApplication).filter(PaymentApplication.id == application_id).first()
    if not application:
        raise not_found("Payment application")
    get_phase(db, user, application.phase_id)
    return application


def create_application(db: Session, user: User, phase_id: int, **data) -> PaymentApplication:
    require_user(user)
    if not can(user.role, "update", "phase"):
        raise forbidden()
    phase = get_phase(db, user, phase_id)
    payload = validate(PaymentApplicationCreate, **data)

    last_number = db.query(func.max(PaymentApplication.number)).filter(PaymentApplication.phase_id == phase.id).scalar()
    application = PaymentApplication(
        phase_id=phase.id,
        number=(last_number or 0) + 1,
        created_by_id=user.id,
        status="DRAFT",
        current_due=current_payment_due(
            payload.work_completed, payload.materials_stored, payload.retainage, payload.previous_payments,
        ),
        **payload.model_dump(),
    )
    db.add(application)
    db.commit()
    db.refresh(application)

    log_activity(
        db, user, "PAYMENT_APP_CREATED",
        f"Payment application #{application.number} created for {phase.name}",
        project_id=phase.project_id, data={"paymentAppId": application.id, "phaseId": phase.id},
    )
    return application


def update_application_status(db: Session, user: User, application_id: int, status: str) -> PaymentApplication:
    require_user(user)
    if not can(user.role, "manage", "phase"):
        raise forbidden()
    if status not in PAYMENT_APP_STATUSES:
        raise bad_request("Invalid status")
    application = _get_application(db, user, application_id)
    application.status = status
    db.commit()
    return application


def delete_application(db: Session, user: User, application_id: int) -> None:
    require_user(user)
    if not can(user.role, "manage", "phase"):
        raise forbidden()
    application = _get_application(db, user, application_id)
    db.delete(application)
    db.commit()
