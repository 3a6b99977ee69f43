from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from constructpm.actions.common import not_found
from constructpm.core.config import settings
from constructpm.db.models.api_key import ApiKey
from constructpm.db.models.phase import Phase
from constructpm.db.models.project import Project
from constructpm.routers import deps

router = APIRouter(
    prefix=settings.API_V1_STR,
    tags=["api"]
)

def _project_json(project: Project, phase_count: int = None) -> dict:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "address": project.address,
        "status": project.status,
        "budget": project.budget,
        "planApproval": project.plan_approval.isoformat() if project.plan_approval else None,
        "estCompletion": project.est_completion.isoformat() if project.est_completion else None,
        "updatedAt": project.updated_at.isoformat() if project.updated_at else None,
        "phaseCount": phase_count,
    }

def _phase_json(phase: Phase) -> dict:
    return {
        "id": phase.id,
        "name": phase.name,
        "status": phase.status,
        "progress": phase.progress or 0,
        "isMilestone": bool(phase.is_milestone),
        "sortOrder": phase.sort_order,
        "estStart": phase.est_start.isoformat(),
        "estEnd": phase.est_end.isoformat(),
        "worstStart": phase.worst_start.isoformat() if phase.worst_start else None,
        "worstEnd": phase.worst_end.isoformat() if phase.worst_end else None,
    }

@router.get("/projects")
async def list_projects(db: Session = Depends(deps.get_db), api_key: ApiKey = Depends(deps.get_api_key)):
    projects = db.query(Project).filter(Project.organization_id == api_key.organization_id)\
        .order_by(Project.updated_at.desc(), Project.id.desc()).all()
    counts = dict(
        db.query(Phase.project_id, func.count(Phase.id))
        .filter(Phase.project_id.in_([p.id for p in projects] or [0]))
        .group_by(Phase.project_id)
        .all()
    )
    return {"projects": [_project_json(p, counts.get(p.id, 0)) for p in projects]}

@router.get("/projects/{project_id}")
async def get_project(project_id: int, db: Session = Depends(deps.get_db), api_key: ApiKey = Depends(deps.get_api_key)):
    project = db.query(Project).filter(
        Project.id == project_id,
        Project.organization_id == api_key.organization_id
    ).first()
    if not project:
        raise not_found("Project")
    phases = db.query(Phase).filter(Phase.project_id == project.id).order_by(Phase.sort_order).all()
    data = _project_json(project, len(phases))
    data["phases"] = [_phase_json(p) for p in phases]
    return data
