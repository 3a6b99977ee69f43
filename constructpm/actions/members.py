from typing import List

from sqlalchemy.orm import Session

from constructpm.actions.common import (
    bad_request, forbidden, get_project, not_found, require_user,
)
from constructpm.core.permissions import can
from constructpm.db.models.project import MEMBER_ROLES, ProjectMember
from constructpm.db.models.user import User
from constructpm.utils.activity import log_activity
from constructpm.utils.notifications import notify


def list_members(db: Session, user: User, project_id: int) -> List[ProjectMember]:
    project = get_project(db, user, project_id)
    if not can(user.role, "view", "member"):
        raise forbidden()
    return db.query(ProjectMember).filter(ProjectMember.project_id == project.id).order_by(ProjectMember.id).all()


def owner_count(db: Session, project_id: int) -> int:
    return db.query(ProjectMember).filter(
        ProjectMember.project_id == project_id,
        ProjectMember.role == "OWNER",
    ).count()


def _get_member(db: Session, project_id: int, member_id: int) -> ProjectMember:
    member = db.query(ProjectMember).filter(
        ProjectMember.id == member_id,
        ProjectMember.project_id == project_id,
    ).first()
    if not member:
        raise not_found("Member")
    return member


def add_member(db: Session, user: User, project_id: int, email: str, role: str, background=None) -> ProjectMember:
    """Add an existing user of the organisation to the project."""
    project = get_project(db, user, project_id)
    if not can(user.role, "create", "member"):
        raise forbidden()
    if role not in MEMBER_ROLES:
        raise bad_request("Invalid role")

    invitee = db.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.organization_id == user.organization_id,
    ).first()
    if not invitee:
        raise not_found("User")
    existing = db.query(ProjectMember).filter(
        ProjectMember.project_id == project.id,
        ProjectMember.user_id == invitee.id,
    ).first()
    if existing:
        raise bad_request("User is already a member of this project")

    member = ProjectMember(project_id=project.id, user_id=invitee.id, role=role)
    db.add(member)
    db.commit()
    db.refresh(member)

    log_activity(
        db, user, "MEMBER_ADDED", f"Added {invitee.display_name} as {role}",
        project_id=project.id, data={"memberId": member.id, "userId": invitee.id, "role": role},
    )
    notify(
        db, "MEMBER_INVITED", f"Added to {project.name}",
        f"{user.display_name} added you to {project.name} as {role.lower()}",
        [invitee.id], actor_id=user.id, data={"projectId": project.id}, background=background,
    )
    return member


def update_member_role(db: Session, user: User, project_id: int, member_id: int, role: str) -> ProjectMember:
    project = get_project(db, user, project_id)
    if not can(user.role, "update", "member"):
        raise forbidden()
    if role not in MEMBER_ROLES:
        raise bad_request("Invalid role")

    member = _get_member(db, project.id, member_id)
    old_role = member.role
    if old_role == role:
        return member
    if old_role == "OWNER" and owner_count(db, project.id) <= 1:
        raise bad_request("Project must keep at least one owner")

    member.role = role
    db.commit()

    log_activity(
        db, user, "MEMBER_UPDATED",
        f"Changed {member.user.display_name} role from {old_role} to {role}",
        project_id=project.id,
        data={"memberId": member.id, "userId": member.user_id, "oldRole": old_role, "newRole": role},
    )
    return member


def remove_member(db: Session, user: User, project_id: int, member_id: int) -> None:
    project = get_project(db, user, project_id)
    if not can(user.role, "delete", "member"):
        raise forbidden()

    member = _get_member(db, project.id, member_id)
    if member.role == "OWNER" and owner_count(db, project.id) <= 1:
        raise bad_request("Cannot remove the last owner")

    data = {"memberId": member.id, "userId": member.user_id, "role": member.role}
    name = member.user.display_name
    db.delete(member)
    db.commit()

    log_activity(db, user, "MEMBER_REMOVED", f"Removed {name} from the project", project_id=project.id, data=data)
