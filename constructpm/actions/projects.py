from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from constructpm.actions.common import (
    bad_request, forbidden, get_project, require_user, validate,
)
from constructpm.core.permissions import ADMIN, can, can_create_project
from constructpm.db.models.phase import Phase
from constructpm.db.models.project import PROJECT_STATUSES, Project, ProjectMember
from constructpm.db.models.user import User
from constructpm.schemas import ProjectCreate, ProjectUpdate
from constructpm.utils.activity import log_activity


def list_projects(db: Session, user: User) -> List[dict]:
    """Projects the user can see, newest activity first, with phase counts."""
    require_user(user)
    query = db.query(Project).filter(Project.organization_id == user.organization_id)
    if user.role != ADMIN:
        query = query.join(ProjectMember).filter(ProjectMember.user_id == user.id)
    projects = query.order_by(Project.updated_at.desc(), Project.id.desc()).all()

    counts = dict(
        db.query(Phase.project_id, func.count(Phase.id))
        .filter(Phase.project_id.in_([p.id for p in projects] or [0]))
        .group_by(Phase.project_id)
        .all()
    )
    complete = dict(
        db.query(Phase.project_id, func.count(Phase.id))
        .filter(Phase.project_id.in_([p.id for p in projects] or [0]), Phase.status == "COMPLETE")
        .group_by(Phase.project_id)
        .all()
    )
    return [
        {"project": p, "phase_count": counts.get(p.id, 0), "complete_count": complete.get(p.id, 0)}
        for p in projects
    ]


def create_project(db: Session, user: User, **data) -> Project:
    """
    Create a project, optionally with its phases (the setup wizard).

    The creator becomes the OWNER member and the estimated completion is the
    latest phase end date.
    """
    require_user(user)
    if not can_create_project(user.role):
        raise forbidden()
    payload = validate(ProjectCreate, **data)

    project = Project(
        organization_id=user.organization_id,
        name=payload.name,
        description=payload.description,
        address=payload.address,
        plan_approval=payload.plan_approval,
        budget=payload.budget,
        status="PLANNING",
    )
    db.add(project)
    db.flush()

    for index, phase in enumerate(payload.phases):
        db.add(Phase(
            project_id=project.id,
            name=phase.name,
            detail=phase.detail,
            est_start=phase.est_start,
            est_end=phase.est_end,
            worst_start=phase.worst_start,
            worst_end=phase.worst_end,
            is_milestone=phase.is_milestone,
            sort_order=index,
        ))
    if payload.phases:
        project.est_completion = max(p.est_end for p in payload.phases)

    db.add(ProjectMember(project_id=project.id, user_id=user.id, role="OWNER"))
    db.commit()
    db.refresh(project)

    log_activity(
        db, user, "PROJECT_CREATED", f"Created project {project.name}",
        project_id=project.id, data={"phaseCount": len(payload.phases)},
    )
    return project


def update_project(db: Session, user: User, project_id: int, **data) -> Project:
    """Write only the fields that were supplied."""
    project = get_project(db, user, project_id)
    if not can(user.role, "update", "project"):
        raise forbidden()
    payload = validate(ProjectUpdate, **data)

    changes = payload.model_dump(exclude_none=True)
    for field, value in changes.items():
        setattr(project, field, value)
    db.commit()
    db.refresh(project)

    if changes:
        log_activity(
            db, user, "PROJECT_UPDATED", f"Updated project {project.name}",
            project_id=project.id, data={"fields": sorted(changes)},
        )
    return project


def update_project_status(db: Session, user: User, project_id: int, new_status: str) -> Project:
    project = get_project(db, user, project_id)
    if not can(user.role, "update", "project"):
        raise forbidden()
    if new_status not in PROJECT_STATUSES:
        raise bad_request("Invalid status")

    old_status = project.status
    if old_status == new_status:
        return project
    project.status = new_status
    db.commit()

    log_activity(
        db, user, "PROJECT_STATUS_CHANGED",
        f"Changed project {project.name} status from {old_status} to {new_status}",
        project_id=project.id,
        data={"oldStatus": old_status, "newStatus": new_status},
    )
    return project


def delete_project(db: Session, user: User, project_id: int) -> None:
    project = get_project(db, user, project_id)
    if user.role != ADMIN:
        raise forbidden("Only admins can delete projects")
    name = project.name
    db.delete(project)
    db.commit()
    # Project logs go with the project; keep an org-level trace
    log_activity(db, user, "PROJECT_DELETED", f"Deleted project {name}", data={"projectId": project_id})


def get_project_detail(db: Session, user: User, project_id: int) -> dict:
    project = get_project(db, user, project_id)
    phases = db.query(Phase).filter(Phase.project_id == project.id).order_by(Phase.sort_order).all()
    total = len(phases)
    done = len([p for p in phases if p.status == "COMPLETE"])
    return {
        "project": project,
        "phases": phases,
        "progress": round(sum(p.progress or 0 for p in phases) / total) if total else 0,
        "complete_count": done,
    }
