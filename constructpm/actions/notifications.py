import re
from typing import Optional

from sqlalchemy.orm import Session

from constructpm.actions.common import bad_request, not_found, require_user, validate
from constructpm.db.models.notification import Notification, NotificationPreference
from constructpm.db.models.user import User
from constructpm.schemas import NotificationPreferenceUpdate
from constructpm.utils.notifications import DEFAULT_PREFERENCES

E164_RE = re.compile(r"^\+[1-9]\d{1,14}$")


def list_notifications(db: Session, user: User, page: int = 1, limit: int = 20, unread_only: bool = False) -> dict:
    require_user(user)
    page = max(page, 1)
    query = db.query(Notification).filter(Notification.user_id == user.id)
    if unread_only:
        query = query.filter(Notification.read == False)
    # One extra row tells us whether another page exists
    rows = query.order_by(Notification.created_at.desc(), Notification.id.desc())\
        .offset((page - 1) * limit)\
        .limit(limit + 1)\
        .all()
    return {"notifications": rows[:limit], "has_more": len(rows) > limit, "page": page}


def unread_count(db: Session, user: User) -> int:
    require_user(user)
    return db.query(Notification).filter(Notification.user_id == user.id, Notification.read == False).count()


def _own_notification(db: Session, user: User, notification_id: int) -> Notification:
    require_user(user)
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user.id,
    ).first()
    if not notification:
        raise not_found("Notification")
    return notification


def mark_as_read(db: Session, user: User, notification_id: int) -> Notification:
    notification = _own_notification(db, user, notification_id)
    notification.read = True
    db.commit()
    return notification


def mark_all_as_read(db: Session, user: User) -> int:
    require_user(user)
    updated = db.query(Notification).filter(
        Notification.user_id == user.id,
        Notification.read == False,
    ).update({"read": True}, synchronize_session=False)
    db.commit()
    return updated


def delete_notification(db: Session, user: User, notification_id: int) -> None:
    notification = _own_notification(db, user, notification_id)
    db.delete(notification)
    db.commit()


# Preferences

def get_preferences(db: Session, user: User) -> dict:
    """Stored preferences, or the defaults when the user never saved any."""
    require_user(user)
    pref = db.query(NotificationPreference).filter(NotificationPreference.user_id == user.id).first()
    if pref is None:
        return dict(DEFAULT_PREFERENCES)
    return {field: getattr(pref, field) for field in DEFAULT_PREFERENCES}


def update_preferences(db: Session, user: User, **data) -> NotificationPreference:
    """Upsert: only the supplied toggles change, the rest keep their value or default."""
    require_user(user)
    clear_quiet = "quiet_start" in data and not data["quiet_start"]
    payload = validate(NotificationPreferenceUpdate, **data)

    pref = db.query(NotificationPreference).filter(NotificationPreference.user_id == user.id).first()
    if pref is None:
        pref = NotificationPreference(user_id=user.id, **DEFAULT_PREFERENCES)
        db.add(pref)
    for field, value in payload.model_dump(exclude_none=True).items():
        setattr(pref, field, value)
    if clear_quiet:
        pref.quiet_start = None
        pref.quiet_end = None
    db.commit()
    db.refresh(pref)
    return pref


def update_phone(db: Session, user: User, phone: Optional[str]) -> User:
    """Set the SMS number in E.164 form; an empty value clears it."""
    require_user(user)
    phone = (phone or "").strip().replace(" ", "").replace("-", "")
    if not phone:
        user.phone = None
    elif not E164_RE.match(phone):
        raise bad_request("Phone number must be in E.164 format, e.g. +14155550123")
    else:
        user.phone = phone
    db.commit()
    return user
