from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from constructpm.actions import insights as insight_actions
from constructpm.actions.common import get_project, not_found
from constructpm.core.templates import templates
from constructpm.db.models.user import User
from constructpm.routers import deps

router = APIRouter(
    prefix="/projects/{project_id}/insights",
    tags=["insights"],
    dependencies=[Depends(deps.get_current_user)]
)

TITLES = {
    "stakeholder-update": "Weekly stakeholder update",
    "meeting-prep": "Meeting prep brief",
    "schedule-risk": "Schedule risk",
}

@router.get("/")
async def insights_home(project_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    return templates.TemplateResponse("insights/index.html", {
        "request": request,
        "user": user,
        "project": get_project(db, user, project_id),
        "titles": TITLES,
        "kind": None,
        "result": None
    })

@router.post("/{kind}")
async def generate_insight(
    project_id: int,
    kind: str,
    request: Request,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    generate = insight_actions.INSIGHTS.get(kind)
    if generate is None:
        raise not_found("Insight")
    result = generate(db, user, project_id)
    return templates.TemplateResponse("insights/index.html", {
        "request": request,
        "user": user,
        "project": get_project(db, user, project_id),
        "titles": TITLES,
        "kind": kind,
        "result": result
    })
