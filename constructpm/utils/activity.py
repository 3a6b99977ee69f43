import logging
from typing import Optional
from sqlalchemy.orm import Session
from constructpm.db.models.activity import ActivityLog
from constructpm.db.models.user import User

logger = logging.getLogger(__name__)

def log_activity(
    db: Session,
    user: Optional[User],
    action: str,
    message: str,
    project_id: int = None,
    data: dict = None
):
    """
    Records an activity in the audit log.

    :param db: Database session
    :param user: The User performing the action
    :param action: Action type (e.g. PHASE_STATUS_CHANGED, MEMBER_REMOVED)
    :param message: Human readable description shown in the activity feed
    :param project_id: Project the action belongs to, if any
    :param data: Values needed to undo the action (old status, old role, ...)
    """
    try:
        activity = ActivityLog(
            user_id=user.id if user else None,
            project_id=project_id,
            action=action,
            message=message,
            data=data,
        )
        db.add(activity)
        db.commit()
    except Exception:
        # The audit trail must never break the action that triggered it
        logger.exception("Error logging activity %s", action)
        db.rollback()
