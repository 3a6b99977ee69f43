import hashlib
import secrets
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from constructpm.actions.common import not_found, require_user, validate
from constructpm.core.dates import to_naive_utc, utcnow
from constructpm.core.permissions import check_admin
from constructpm.db.models.api_key import ApiKey
from constructpm.db.models.user import User
from constructpm.schemas import ApiKeyCreate
from constructpm.utils.activity import log_activity

KEY_PREFIX = "cpk_"


def generate_key() -> str:
    return KEY_PREFIX + secrets.token_hex(32)


def hash_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def key_hint(raw_key: str) -> str:
    return f"{KEY_PREFIX}...{raw_key[-4:]}"


def list_keys(db: Session, user: User) -> List[ApiKey]:
    require_user(user)
    check_admin(user)
    return db.query(ApiKey).filter(ApiKey.organization_id == user.organization_id)\
        .order_by(ApiKey.created_at.desc()).all()


def create_key(db: Session, user: User, name: str, expires_at=None) -> Tuple[ApiKey, str]:
    """Returns the stored row and the raw key; the raw key is never stored."""
    require_user(user)
    check_admin(user)
    payload = validate(ApiKeyCreate, name=name, expires_at=expires_at)

    raw_key = generate_key()
    api_key = ApiKey(
        organization_id=user.organization_id,
        created_by_id=user.id,
        name=payload.name,
        key_hash=hash_key(raw_key),
        prefix=key_hint(raw_key),
        expires_at=to_naive_utc(payload.expires_at),
    )
    db.add(api_key)
    db.commit()
    db.refresh(api_key)

    log_activity(db, user, "API_KEY_CREATED", f'Created API key "{api_key.name}"', data={"apiKeyId": api_key.id})
    return api_key, raw_key


def _get_key(db: Session, user: User, key_id: int) -> ApiKey:
    require_user(user)
    check_admin(user)
    api_key = db.query(ApiKey).filter(ApiKey.id == key_id, ApiKey.organization_id == user.organization_id).first()
    if not api_key:
        raise not_found("API key")
    return api_key


def revoke_key(db: Session, user: User, key_id: int) -> ApiKey:
    api_key = _get_key(db, user, key_id)
    api_key.active = False
    db.commit()
    log_activity(db, user, "API_KEY_REVOKED", f'Revoked API key "{api_key.name}"', data={"apiKeyId": api_key.id})
    return api_key


def delete_key(db: Session, user: User, key_id: int) -> None:
    api_key = _get_key(db, user, key_id)
    db.delete(api_key)
    db.commit()


def verify_key(db: Session, raw_key: Optional[str]) -> Optional[ApiKey]:
    """The active, unexpired key matching `raw_key`, or None. Stamps last use."""
    if not raw_key or not raw_key.startswith(KEY_PREFIX):
        return None
    api_key = db.query(ApiKey).filter(ApiKey.key_hash == hash_key(raw_key)).first()
    if api_key is None or not api_key.active:
        return None
    now = utcnow()
    if api_key.expires_at is not None and api_key.expires_at <= now:
        return None
    api_key.last_used_at = now
    db.commit()
    return api_key
