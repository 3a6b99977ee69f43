from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from constructpm.actions import activity as activity_actions
from constructpm.actions import projects as project_actions
from constructpm.core.permissions import ADMIN
from constructpm.core.templates import templates
from constructpm.db.models.user import User
from constructpm.routers import deps

router = APIRouter(
    prefix="/activity",
    tags=["activity"],
    dependencies=[Depends(deps.get_current_user)]
)

@router.get("/")
async def list_activity(
    request: Request,
    project_id: Optional[int] = None,
    action: Optional[str] = None,
    page: int = 1,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    result = activity_actions.list_activity(db, user, project_id=project_id, action=action or None, page=page)
    return templates.TemplateResponse("activity/list.html", {
        "request": request,
        "user": user,
        **result,
        "projects": [row["project"] for row in project_actions.list_projects(db, user)],
        "selected_project_id": project_id,
        "selected_action": action,
        "undoable": activity_actions.UNDO_HANDLERS,
        "can_undo": user.role == ADMIN
    })

@router.post("/{log_id}/undo")
async def undo_activity(log_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    activity_actions.undo_activity(db, user, log_id)
    return deps.toast_redirect(deps.back_url(request, "/activity"), "Action undone")
