from math import ceil
from typing import Optional

from sqlalchemy.orm import Session

from constructpm.actions.common import bad_request, forbidden, not_found, require_user
from constructpm.actions.members import owner_count
from constructpm.core.dates import parse_datetime, utcnow
from constructpm.core.permissions import ADMIN, PROJECT_MANAGER
from constructpm.db.models.activity import ActivityLog
from constructpm.db.models.checklist import ChecklistItem
from constructpm.db.models.phase import Phase
from constructpm.db.models.project import Project, ProjectMember
from constructpm.db.models.user import User
from constructpm.utils.activity import log_activity

UNDOABLE_ACTIONS = [
    "PROJECT_STATUS_CHANGED",
    "PHASE_STATUS_CHANGED",
    "MEMBER_REMOVED",
    "MEMBER_UPDATED",
    "CHECKLIST_ITEM_TOGGLED",
]


def list_activity(
    db: Session,
    user: User,
    project_id: Optional[int] = None,
    action: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
) -> dict:
    require_user(user)
    if user.role not in (ADMIN, PROJECT_MANAGER):
        raise forbidden()
    page = max(page, 1)

    # Org projects plus org-level entries written by org users
    query = db.query(ActivityLog).outerjoin(Project, ActivityLog.project_id == Project.id)\
        .outerjoin(User, ActivityLog.user_id == User.id)\
        .filter(
            (Project.organization_id == user.organization_id)
            | ((ActivityLog.project_id == None) & (User.organization_id == user.organization_id))
        )
    if project_id:
        query = query.filter(ActivityLog.project_id == project_id)
    if action:
        query = query.filter(ActivityLog.action == action)

    total = query.count()
    logs = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())\
        .offset((page - 1) * limit)\
        .limit(limit)\
        .all()
    return {
        "logs": logs,
        "total": total,
        "page": page,
        "pages": ceil(total / limit) if total else 0,
    }


def _require(data: dict, *keys):
    missing = [k for k in keys if data.get(k) is None]
    if missing:
        raise bad_request(f"Cannot undo: missing {', '.join(missing)}")


def _undo_project_status(db: Session, log: ActivityLog, data: dict):
    _require(data, "oldStatus")
    project = db.query(Project).filter(Project.id == log.project_id).first()
    if not project:
        raise not_found("Project")
    project.status = data["oldStatus"]


def _undo_phase_status(db: Session, log: ActivityLog, data: dict):
    _require(data, "phaseId", "oldStatus")
    phase = db.query(Phase).filter(Phase.id == data["phaseId"]).first()
    if not phase:
        raise not_found("Phase")
    # Restores the stored value directly; the workflow rules do not apply here
    phase.status = data["oldStatus"]
    if data["oldStatus"] != "COMPLETE":
        phase.actual_end = None
    if data["oldStatus"] == "PENDING":
        phase.actual_start = None


def _undo_member_removed(db: Session, log: ActivityLog, data: dict):
    _require(data, "userId", "role")
    existing = db.query(ProjectMember).filter(
        ProjectMember.project_id == log.project_id,
        ProjectMember.user_id == data["userId"],
    ).first()
    if existing:
        raise bad_request("Cannot undo: user is already a member")
    db.add(ProjectMember(project_id=log.project_id, user_id=data["userId"], role=data["role"]))


def _undo_member_updated(db: Session, log: ActivityLog, data: dict):
    _require(data, "userId", "oldRole")
    member = db.query(ProjectMember).filter(
        ProjectMember.project_id == log.project_id,
        ProjectMember.user_id == data["userId"],
    ).first()
    if not member:
        raise not_found("Member")
    if member.role == "OWNER" and data["oldRole"] != "OWNER" and owner_count(db, log.project_id) <= 1:
        raise bad_request("Cannot undo: the project must keep at least one owner")
    member.role = data["oldRole"]


def _undo_checklist_toggle(db: Session, log: ActivityLog, data: dict):
    _require(data, "itemId", "wasCompleted")
    item = db.query(ChecklistItem).filter(ChecklistItem.id == data["itemId"]).first()
    if not item:
        raise not_found("Checklist item")
    item.completed = bool(data["wasCompleted"])
    if item.completed:
        item.completed_by_id = data.get("completedById")
        item.completed_at = parse_datetime(data.get("completedAt")) or utcnow()
    else:
        item.completed_by_id = None
        item.completed_at = None


UNDO_HANDLERS = {
    "PROJECT_STATUS_CHANGED": _undo_project_status,
    "PHASE_STATUS_CHANGED": _undo_phase_status,
    "MEMBER_REMOVED": _undo_member_removed,
    "MEMBER_UPDATED": _undo_member_updated,
    "CHECKLIST_ITEM_TOGGLED": _undo_checklist_toggle,
}


def undo_activity(db: Session, user: User, log_id: int) -> None:
    """
    Reverse a logged action using the old values stored with it, record an
    "Undo:" entry and drop the original entry.
    """
    require_user(user)
    if user.role != ADMIN:
        raise forbidden("Only admins can undo")

    log = db.query(ActivityLog).outerjoin(Project, ActivityLog.project_id == Project.id).filter(
        ActivityLog.id == log_id,
        Project.organization_id == user.organization_id,
    ).first()
    if not log:
        raise not_found("Activity")

    handler = UNDO_HANDLERS.get(log.action)
    if handler is None:
        raise bad_request(f"Cannot undo action type: {log.action}")

    data = dict(log.data or {})
    handler(db, log, data)
    db.commit()

    log_activity(
        db, user, log.action, f"Undo: {log.message}",
        project_id=log.project_id, data={"undoneLogId": log.id, **data},
    )
    db.delete(log)
    db.commit()
