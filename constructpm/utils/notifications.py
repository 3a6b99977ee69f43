import logging
from typing import Iterable, List, Optional

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from constructpm.db.models.notification import Notification, NotificationPreference
from constructpm.db.models.user import User
from constructpm.utils.email import EMAIL_TEMPLATES, send_notification_email

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES = {
    "email_enabled": True,
    "sms_enabled": False,
    "in_app_enabled": True,
    "email_phase_status": True,
    "email_review": True,
    "email_checklist": True,
    "email_documents": True,
    "email_comments": False,
    "sms_phase_status": True,
    "sms_review": True,
    "sms_checklist": False,
    "sms_documents": False,
    "quiet_start": None,
    "quiet_end": None,
}

# Notification type -> per-event e-mail toggle
EMAIL_PREFERENCE_FIELDS = {
    "PHASE_STATUS_CHANGED": "email_phase_status",
    "REVIEW_REQUESTED": "email_review",
    "CHECKLIST_COMPLETED": "email_checklist",
    "DOCUMENT_STATUS_CHANGED": "email_documents",
    "COMMENT_ADDED": "email_comments",
}


def preference_value(pref: Optional[NotificationPreference], field: str):
    if pref is None:
        return DEFAULT_PREFERENCES[field]
    value = getattr(pref, field)
    return DEFAULT_PREFERENCES[field] if value is None else value


def wants_email(pref: Optional[NotificationPreference], notification_type: str) -> bool:
    field = EMAIL_PREFERENCE_FIELDS.get(notification_type)
    if field is None:
        return False
    return bool(preference_value(pref, "email_enabled") and preference_value(pref, field))


def unique_recipients(recipient_ids: Iterable[int], actor_id: Optional[int]) -> List[int]:
    """De-duplicate while keeping order and drop the actor."""
    seen = set()
    result = []
    for rid in recipient_ids:
        if rid is None or rid == actor_id or rid in seen:
            continue
        seen.add(rid)
        result.append(rid)
    return result


def notify(
    db: Session,
    type: str,
    title: str,
    message: str,
    recipient_ids: Iterable[int],
    actor_id: Optional[int] = None,
    data: dict = None,
    background: Optional[BackgroundTasks] = None,
) -> int:
    """
    Fan a notification out to project members.

    Creates one in-app row per recipient (honouring preferences) and queues
    e-mail for event types with a template. Returns the number of in-app rows
    created. Never raises: notification problems are logged and swallowed so
    they cannot fail the action that triggered them.
    """
    try:
        recipients = unique_recipients(recipient_ids, actor_id)
        if not recipients:
            return 0

        users = db.query(User).filter(User.id.in_(recipients), User.is_active == True).all()
        prefs = {
            p.user_id: p
            for p in db.query(NotificationPreference).filter(NotificationPreference.user_id.in_(recipients)).all()
        }

        created = 0
        for user in users:
            pref = prefs.get(user.id)
            if preference_value(pref, "in_app_enabled"):
                db.add(Notification(user_id=user.id, type=type, title=title, message=message, data=data))
                created += 1
        db.commit()

        if type in EMAIL_TEMPLATES:
            for user in users:
                if not user.email or not wants_email(prefs.get(user.id), type):
                    continue
                if background is not None:
                    background.add_task(send_notification_email, user.email, type, title, message, data)
                else:
                    logger.debug("No background queue; skipping %s e-mail to %s", type, user.email)
        return created
    except Exception:
        logger.exception("Failed to create %s notifications", type)
        db.rollback()
        return 0
