"""
Phase actions: creation, Gantt date edits, the status workflow and staff
assignments.

Status workflow:
    PENDING -> IN_PROGRESS -> REVIEW_REQUESTED -> UNDER_REVIEW -> COMPLETE

Anyone allowed to update a phase may move it one step forward, and a phase
sent for review can go back to IN_PROGRESS for rework. Reviewers (ADMIN and
PROJECT_MANAGER) may skip ahead and are the only ones who can set
UNDER_REVIEW or COMPLETE. COMPLETE is final.
"""
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from constructpm.actions.common import (
    bad_request, forbidden, get_phase, get_project, not_found,
    project_member_ids, require_user, validate,
)
from constructpm.core.dates import parse_date, utcnow
from constructpm.core.permissions import CONTRACTOR, can, can_manage_phase, can_review_phase
from constructpm.db.models.document import Document, Photo
from constructpm.db.models.phase import PHASE_STATUSES, Phase, PhaseAssignment
from constructpm.db.models.staff import Staff
from constructpm.db.models.user import User
from constructpm.schemas import PhaseCreate, PhaseInput
from constructpm.utils.activity import log_activity
from constructpm.utils.notifications import notify

STATUS_LABELS = {
    "IN_PROGRESS": "started",
    "REVIEW_REQUESTED": "ready for review",
    "UNDER_REVIEW": "under review",
    "COMPLETE": "completed",
    "PENDING": "set to pending",
}

REVIEW_STATUSES = ("UNDER_REVIEW", "COMPLETE")
REWORK_FROM = ("REVIEW_REQUESTED", "UNDER_REVIEW")


def is_transition_allowed(old_status: str, new_status: str, reviewer: bool) -> bool:
    if old_status == new_status or old_status == "COMPLETE":
        return False
    old_index = PHASE_STATUSES.index(old_status)
    new_index = PHASE_STATUSES.index(new_status)
    if new_status == "IN_PROGRESS" and old_status in REWORK_FROM:
        return True
    if new_index == old_index + 1:
        return True
    return reviewer and new_index > old_index


def is_assigned(db: Session, user: User, phase: Phase) -> bool:
    """Whether the user is linked to a staff record assigned to the phase."""
    conditions = [Staff.user_id == user.id]
    if user.email:
        conditions.append(func.lower(Staff.email) == user.email.lower())
    return db.query(PhaseAssignment).join(Staff).filter(
        PhaseAssignment.phase_id == phase.id,
        or_(*conditions),
    ).first() is not None


def _require_phase_update(db: Session, user: User, phase: Phase):
    if not can(user.role, "update", "phase"):
        raise forbidden()
    if user.role == CONTRACTOR and not is_assigned(db, user, phase):
        raise forbidden("Contractors can only update assigned phases")


def list_phases(db: Session, user: User, project_id: int) -> List[dict]:
    """Phases in Gantt order with assignments and document/photo counts."""
    project = get_project(db, user, project_id)
    phases = db.query(Phase).filter(Phase.project_id == project.id).order_by(Phase.sort_order, Phase.id).all()
    ids = [p.id for p in phases] or [0]
    doc_counts = dict(
        db.query(Document.phase_id, func.count(Document.id)).filter(Document.phase_id.in_(ids)).group_by(Document.phase_id).all()
    )
    photo_counts = dict(
        db.query(Photo.phase_id, func.count(Photo.id)).filter(Photo.phase_id.in_(ids)).group_by(Photo.phase_id).all()
    )
    return [
        {
            "phase": p,
            "assignments": p.assignments,
            "document_count": doc_counts.get(p.id, 0),
            "photo_count": photo_counts.get(p.id, 0),
        }
        for p in phases
    ]


def create_phase(db: Session, user: User, project_id: int, **data) -> Phase:
    project = get_project(db, user, project_id)
    if not can_manage_phase(user.role):
        raise forbidden()
    payload = validate(PhaseCreate, **data)

    sort_order = payload.sort_order
    if sort_order is None:
        current_max = db.query(func.max(Phase.sort_order)).filter(Phase.project_id == project.id).scalar()
        sort_order = (current_max if current_max is not None else -1) + 1

    phase = Phase(
        project_id=project.id,
        name=payload.name,
        detail=payload.detail,
        is_milestone=payload.is_milestone,
        est_start=payload.est_start,
        est_end=payload.est_end,
        worst_start=payload.worst_start,
        worst_end=payload.worst_end,
        sort_order=sort_order,
    )
    db.add(phase)
    if project.est_completion is None or payload.est_end > project.est_completion:
        project.est_completion = payload.est_end
    db.commit()
    db.refresh(phase)

    log_activity(db, user, "PHASE_CREATED", f'Added phase "{phase.name}"', project_id=project.id, data={"phaseId": phase.id})
    return phase


def update_phase_dates(db: Session, user: User, phase_id: int, est_start, est_end,
                       worst_start=None, worst_end=None) -> Phase:
    """Gantt drag/resize."""
    phase = get_phase(db, user, phase_id)
    _require_phase_update(db, user, phase)

    start, end = parse_date(est_start), parse_date(est_end)
    if start is None or end is None:
        raise bad_request("Estimated dates are required")
    if end < start:
        raise bad_request("Estimated end must be on or after estimated start")
    w_start, w_end = parse_date(worst_start), parse_date(worst_end)
    if w_start and w_end and w_end < w_start:
        raise bad_request("Worst-case end must be on or after worst-case start")

    phase.est_start, phase.est_end = start, end
    phase.worst_start, phase.worst_end = w_start, w_end
    db.commit()
    return phase


def update_phase_details(db: Session, user: User, phase_id: int, **data) -> Phase:
    phase = get_phase(db, user, phase_id)
    if not can_manage_phase(user.role):
        raise forbidden()
    payload = validate(PhaseInput, **{
        "name": data.get("name", phase.name),
        "detail": data.get("detail", phase.detail),
        "est_start": phase.est_start,
        "est_end": phase.est_end,
        "is_milestone": data.get("is_milestone", phase.is_milestone),
    })
    phase.name = payload.name
    phase.detail = payload.detail
    phase.is_milestone = payload.is_milestone
    for field in ("budget", "actual_cost"):
        if field in data:
            value = data[field]
            if value is not None and value < 0:
                raise bad_request(f"{field} must be positive")
            setattr(phase, field, value)
    if data.get("progress") is not None:
        progress = int(data["progress"])
        if not 0 <= progress <= 100:
            raise bad_request("Progress must be between 0 and 100")
        phase.progress = progress
    db.commit()
    return phase


def update_phase_status(db: Session, user: User, phase_id: int, status: str, background=None) -> Phase:
    phase = get_phase(db, user, phase_id)
    if status not in PHASE_STATUSES:
        raise bad_request("Invalid status")
    if status in REVIEW_STATUSES and not can_review_phase(user.role):
        raise forbidden()
    _require_phase_update(db, user, phase)

    old_status = phase.status
    if not is_transition_allowed(old_status, status, can_review_phase(user.role)):
        raise bad_request(f"Cannot move phase from {old_status} to {status}")

    phase.status = status
    now = utcnow()
    if status == "IN_PROGRESS" and phase.actual_start is None:
        phase.actual_start = now
    if status == "COMPLETE":
        phase.progress = 100
        phase.actual_end = now
    db.commit()

    label = STATUS_LABELS.get(status, "updated")
    project = phase.project
    if status == "REVIEW_REQUESTED":
        notification_type, title = "REVIEW_REQUESTED", f"Review Requested: {phase.name}"
    else:
        notification_type, title = "PHASE_STATUS_CHANGED", f"Phase {label}: {phase.name}"
    notify(
        db, notification_type, title,
        f"{phase.name} on {project.name} is now {label}",
        project_member_ids(db, project.id), actor_id=user.id,
        data={"projectId": project.id, "phaseId": phase.id, "newStatus": status},
        background=background,
    )
    log_activity(
        db, user, "PHASE_STATUS_CHANGED", f"{phase.name} {label}",
        project_id=project.id,
        data={"phaseId": phase.id, "oldStatus": old_status, "newStatus": status},
    )
    return phase


def delete_phase(db: Session, user: User, phase_id: int) -> None:
    phase = get_phase(db, user, phase_id)
    if not can_manage_phase(user.role):
        raise forbidden()
    project_id, name = phase.project_id, phase.name
    db.delete(phase)
    db.commit()
    log_activity(db, user, "PHASE_DELETED", f'Deleted phase "{name}"', project_id=project_id, data={"phaseId": phase_id})


def assign_staff(db: Session, user: User, phase_id: int, staff_id: int, is_owner: bool = False) -> PhaseAssignment:
    """Assign a contact to a phase. A new owner demotes the previous one."""
    phase = get_phase(db, user, phase_id)
    if not can_manage_phase(user.role):
        raise forbidden()
    staff = db.query(Staff).filter(Staff.id == staff_id, Staff.organization_id == user.organization_id).first()
    if not staff:
        raise not_found("Staff")

    if is_owner:
        db.query(PhaseAssignment).filter(
            PhaseAssignment.phase_id == phase.id,
            PhaseAssignment.is_owner == True,
        ).update({"is_owner": False}, synchronize_session=False)

    assignment = db.query(PhaseAssignment).filter(
        PhaseAssignment.phase_id == phase.id,
        PhaseAssignment.staff_id == staff.id,
    ).first()
    if assignment:
        assignment.is_owner = is_owner
    else:
        assignment = PhaseAssignment(phase_id=phase.id, staff_id=staff.id, is_owner=is_owner)
        db.add(assignment)
    db.commit()
    db.refresh(assignment)

    log_activity(
        db, user, "STAFF_ASSIGNED",
        f"Assigned {staff.name} to {phase.name}" + (" as owner" if is_owner else ""),
        project_id=phase.project_id,
        data={"phaseId": phase.id, "staffId": staff.id, "isOwner": is_owner},
    )
    return assignment


def unassign_staff(db: Session, user: User, assignment_id: int) -> None:
    require_user(user)
    assignment = db.query(PhaseAssignment).filter(PhaseAssignment.id == assignment_id).first()
    if not assignment:
        raise not_found("Assignment")
    phase = get_phase(db, user, assignment.phase_id)
    if not can_manage_phase(user.role):
        raise forbidden()

    staff_name, staff_id = assignment.staff.name, assignment.staff_id
    db.delete(assignment)
    db.commit()
    log_activity(
        db, user, "STAFF_UNASSIGNED", f"Removed {staff_name} from {phase.name}",
        project_id=phase.project_id, data={"phaseId": phase.id, "staffId": staff_id},
    )
