"""
Punch list: deficiencies that must be fixed before a phase can close out.

Items move OPEN -> IN_PROGRESS -> READY_FOR_REVIEW -> CLOSED and carry a
per-phase item number (1, 2, 3, ...).
"""
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from constructpm.actions.common import (
    bad_request, forbidden, get_phase, get_project, not_found, require_user, validate,
)
from constructpm.core.dates import utcnow
from constructpm.core.permissions import can
from constructpm.db.models.phase import Phase
from constructpm.db.models.punch_list import PUNCH_PRIORITIES, PUNCH_STATUSES, PunchListItem
from constructpm.db.models.staff import Staff
from constructpm.db.models.user import User
from constructpm.schemas import PunchItemCreate, PunchItemUpdate
from constructpm.utils.activity import log_activity

STATUS_ORDER = {status: i for i, status in enumerate(PUNCH_STATUSES)}
PRIORITY_ORDER = {priority: i for i, priority in enumerate(PUNCH_PRIORITIES)}

CLEARABLE_FIELDS = ("description", "location", "assigned_to_id", "due_date")


def sort_items(items: List[PunchListItem]) -> List[PunchListItem]:
    """Open work first, then by priority, newest first within a bucket."""
    items = sorted(items, key=lambda i: i.created_at, reverse=True)
    return sorted(items, key=lambda i: (STATUS_ORDER.get(i.status, 99), PRIORITY_ORDER.get(i.priority, 99)))


def list_items(db: Session, user: User, phase_id: int) -> List[PunchListItem]:
    phase = get_phase(db, user, phase_id)
    return sort_items(db.query(PunchListItem).filter(PunchListItem.phase_id == phase.id).all())


def project_summary(db: Session, user: User, project_id: int) -> dict:
    project = get_project(db, user, project_id)
    items = db.query(PunchListItem).join(Phase).filter(Phase.project_id == project.id).all()
    return {
        "total": len(items),
        "open": len([i for i in items if i.status == "OPEN"]),
        "in_progress": len([i for i in items if i.status == "IN_PROGRESS"]),
        "ready_for_review": len([i for i in items if i.status == "READY_FOR_REVIEW"]),
        "closed": len([i for i in items if i.status == "CLOSED"]),
        "critical": len([i for i in items if i.priority == "CRITICAL" and i.status != "CLOSED"]),
    }


def _check_assignee(db: Session, user: User, staff_id):
    if staff_id is None:
        return
    if not db.query(Staff).filter(Staff.id == staff_id, Staff.organization_id == user.organization_id).first():
        raise not_found("Staff")


def _get_item(db: Session, user: User, item_id: int) -> PunchListItem:
    require_user(user)
    item = db.query(PunchListItem).filter(PunchListItem.id == item_id).first()
    if not item:
        raise not_found("Punch list item")
    get_phase(db, user, item.phase_id)
    return item


def create_item(db: Session, user: User, phase_id: int, **data) -> PunchListItem:
    require_user(user)
    if not can(user.role, "create", "phase"):
        raise forbidden()
    phase = get_phase(db, user, phase_id)
    payload = validate(PunchItemCreate, **data)
    _check_assignee(db, user, payload.assigned_to_id)

    last_number = db.query(func.max(PunchListItem.item_number)).filter(PunchListItem.phase_id == phase.id).scalar()
    item = PunchListItem(
        phase_id=phase.id,
        item_number=(last_number or 0) + 1,
        status="OPEN",
        created_by_id=user.id,
        **payload.model_dump(),
    )
    db.add(item)
    db.commit()
    db.refresh(item)

    log_activity(
        db, user, "PUNCH_ITEM_CREATED", f"Punch item #{item.item_number} added: {item.title}",
        project_id=phase.project_id, data={"itemId": item.id, "phaseId": phase.id},
    )
    return item


def update_status(db: Session, user: User, item_id: int, status: str) -> PunchListItem:
    require_user(user)
    if not can(user.role, "update", "phase"):
        raise forbidden()
    if status not in PUNCH_STATUSES:
        raise bad_request("Invalid status")
    item = _get_item(db, user, item_id)

    item.status = status
    # Reopening clears the close stamp
    item.closed_at = utcnow() if status == "CLOSED" else None
    db.commit()
    return item


def update_item(db: Session, user: User, item_id: int, **data) -> PunchListItem:
    require_user(user)
    if not can(user.role, "update", "phase"):
        raise forbidden()
    item = _get_item(db, user, item_id)
    # An empty string clears an optional field, None leaves it untouched
    cleared = [name for name in CLEARABLE_FIELDS if isinstance(data.get(name), str) and not data[name].strip()]
    payload = validate(PunchItemUpdate, **data)
    changes = payload.model_dump(exclude_unset=True)
    changes.update(dict.fromkeys(cleared))
    _check_assignee(db, user, changes.get("assigned_to_id"))

    for field, value in changes.items():
        setattr(item, field, value)
    db.commit()
    return item


def delete_item(db: Session, user: User, item_id: int) -> None:
    require_user(user)
    if not can(user.role, "delete", "phase"):
        raise forbidden()
    item = _get_item(db, user, item_id)
    db.delete(item)
    db.commit()
