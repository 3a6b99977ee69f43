"""
Shared lookups for the server actions.

Every lookup is scoped to the caller's organisation; anything outside it is
reported as "not found" so ids from other tenants never leak.
"""
from typing import List, Type, TypeVar

from fastapi import HTTPException, status
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from constructpm.core.permissions import ADMIN
from constructpm.db.models.phase import Phase
from constructpm.db.models.project import Project, ProjectMember
from constructpm.db.models.user import User

PayloadT = TypeVar("PayloadT", bound=BaseModel)


def require_user(user: User) -> User:
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return user


def forbidden(detail: str = "Forbidden"):
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def not_found(thing: str):
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{thing} not found")


def bad_request(detail: str):
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def validate(schema: Type[PayloadT], /, **data) -> PayloadT:
    """Build a payload model, turning validation errors into a 400."""
    try:
        return schema(**data)
    except ValidationError as e:
        first = e.errors()[0]
        loc = ".".join(str(part) for part in first.get("loc", ()))
        msg = first.get("msg", "Invalid input")
        raise bad_request(f"{loc}: {msg}" if loc else msg)


def get_membership(db: Session, project_id: int, user_id: int):
    return db.query(ProjectMember).filter(
        ProjectMember.project_id == project_id,
        ProjectMember.user_id == user_id,
    ).first()


def get_project(db: Session, user: User, project_id: int) -> Project:
    """Project visible to the user: any org project for ADMIN, member projects otherwise."""
    require_user(user)
    project = db.query(Project).filter(
        Project.id == project_id,
        Project.organization_id == user.organization_id,
    ).first()
    if not project:
        raise not_found("Project")
    if user.role != ADMIN and get_membership(db, project.id, user.id) is None:
        raise not_found("Project")
    return project


def get_phase(db: Session, user: User, phase_id: int) -> Phase:
    require_user(user)
    phase = db.query(Phase).join(Project).filter(
        Phase.id == phase_id,
        Project.organization_id == user.organization_id,
    ).first()
    if not phase:
        raise not_found("Phase")
    if user.role != ADMIN and get_membership(db, phase.project_id, user.id) is None:
        raise not_found("Phase")
    return phase


def project_member_ids(db: Session, project_id: int) -> List[int]:
    rows = db.query(ProjectMember.user_id).filter(ProjectMember.project_id == project_id).all()
    return [row[0] for row in rows]


def clean(value):
    """Trim strings; empty strings become None."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value
