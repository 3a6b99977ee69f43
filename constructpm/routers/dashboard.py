from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from constructpm.actions import notifications as notification_actions
from constructpm.actions import projects as project_actions
from constructpm.core.permissions import can_create_project
from constructpm.core.templates import templates
from constructpm.db.models.user import User
from constructpm.routers import deps

router = APIRouter(
    tags=["dashboard"],
    dependencies=[Depends(deps.get_current_user)]
)

@router.get("/dashboard")
async def dashboard(request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    projects = project_actions.list_projects(db, user)
    inbox = notification_actions.list_notifications(db, user, limit=5)

    by_status = {}
    for row in projects:
        by_status[row["project"].status] = by_status.get(row["project"].status, 0) + 1

    return templates.TemplateResponse("dashboard.html", {
        "request": request,
        "user": user,
        "projects": projects[:8],
        "project_total": len(projects),
        "by_status": by_status,
        "notifications": inbox["notifications"],
        "unread": notification_actions.unread_count(db, user),
        "can_create": can_create_project(user.role)
    })
