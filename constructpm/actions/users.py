from math import ceil
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from constructpm.actions.common import bad_request, not_found, require_user, validate
from constructpm.core.permissions import ADMIN, check_admin
from constructpm.core.security import get_password_hash, verify_password
from constructpm.db.models.organization import Organization
from constructpm.db.models.user import User
from constructpm.schemas import SignupPayload, UserCreate
from constructpm.utils.activity import log_activity


def authenticate(db: Session, email: str, password: str) -> Optional[User]:
    db_user = db.query(User).filter(User.email == (email or "").strip().lower()).first()
    if not db_user or not db_user.is_active or not verify_password(password or "", db_user.hashed_password):
        return None
    return db_user


def _email_taken(db: Session, email: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(User.id).filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    return query.first() is not None


def signup(db: Session, **data) -> User:
    """New organisation plus its first user, who becomes the org ADMIN."""
    payload = validate(SignupPayload, **data)
    if _email_taken(db, payload.email):
        raise bad_request("An account with this email already exists")

    org = Organization(name=payload.organization_name)
    db.add(org)
    db.flush()
    admin = User(
        organization_id=org.id,
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        full_name=payload.full_name,
        role=ADMIN,
        is_active=True,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)

    log_activity(db, admin, "ORGANIZATION_CREATED", f'Created organization "{org.name}"')
    return admin


def list_users(db: Session, user: User, page: int = 1, limit: int = 20) -> dict:
    require_user(user)
    check_admin(user)
    page = max(page, 1)
    base = db.query(User).filter(User.organization_id == user.organization_id)
    total = base.with_entities(func.count(User.id)).scalar()
    users = base.order_by(User.full_name, User.email).offset((page - 1) * limit).limit(limit).all()
    return {"users": users, "page": page, "total": total, "pages": max(ceil(total / limit), 1)}


def get_user(db: Session, user: User, user_id: int) -> User:
    require_user(user)
    check_admin(user)
    target = db.query(User).filter(User.id == user_id, User.organization_id == user.organization_id).first()
    if not target:
        raise not_found("User")
    return target


def create_user(db: Session, user: User, **data) -> User:
    require_user(user)
    check_admin(user)
    payload = validate(UserCreate, **data)
    if not payload.password:
        raise bad_request("password: Field required")
    if _email_taken(db, payload.email):
        raise bad_request("An account with this email already exists")

    new_user = User(
        organization_id=user.organization_id,
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        full_name=payload.full_name,
        role=payload.role,
        phone=payload.phone,
        is_active=payload.is_active,
    )
    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    log_activity(db, user, "USER_CREATED", f"Created user {new_user.email} ({new_user.role})",
                 data={"userId": new_user.id})
    return new_user


def update_user(db: Session, user: User, user_id: int, **data) -> User:
    target = get_user(db, user, user_id)
    payload = validate(UserCreate, **data)
    if _email_taken(db, payload.email, exclude_id=target.id):
        raise bad_request("An account with this email already exists")
    # An admin cannot lock themselves out
    if target.id == user.id and (payload.role != ADMIN or not payload.is_active):
        raise bad_request("You cannot remove your own admin access")

    target.email = payload.email
    target.full_name = payload.full_name
    target.role = payload.role
    target.phone = payload.phone
    target.is_active = payload.is_active
    if payload.password:
        target.hashed_password = get_password_hash(payload.password)
    db.commit()

    log_activity(db, user, "USER_UPDATED", f"Updated user {target.email}", data={"userId": target.id})
    return target


def deactivate_user(db: Session, user: User, user_id: int) -> User:
    target = get_user(db, user, user_id)
    if target.id == user.id:
        raise bad_request("You cannot deactivate yourself")
    target.is_active = False
    db.commit()
    log_activity(db, user, "USER_DEACTIVATED", f"Deactivated user {target.email}", data={"userId": target.id})
    return target
