from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from constructpm.actions import notifications as notification_actions
from constructpm.core.templates import templates
from constructpm.db.models.user import User
from constructpm.routers import deps
from constructpm.utils.notifications import DEFAULT_PREFERENCES

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
    dependencies=[Depends(deps.get_current_user)]
)

@router.get("/")
async def list_notifications(
    request: Request,
    page: int = 1,
    unread: bool = False,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    result = notification_actions.list_notifications(db, user, page=page, unread_only=unread)
    return templates.TemplateResponse("notifications/list.html", {
        "request": request,
        "user": user,
        **result,
        "unread_only": unread,
        "unread": notification_actions.unread_count(db, user)
    })

@router.post("/{notification_id}/read")
async def mark_as_read(notification_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    notification_actions.mark_as_read(db, user, notification_id)
    return deps.toast_redirect(deps.back_url(request, "/notifications"))

@router.post("/read-all")
async def mark_all_as_read(db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    count = notification_actions.mark_all_as_read(db, user)
    return deps.toast_redirect("/notifications", f"Marked {count} notifications as read")

@router.post("/{notification_id}/delete")
async def delete_notification(notification_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    notification_actions.delete_notification(db, user, notification_id)
    return deps.toast_redirect(deps.back_url(request, "/notifications"), "Notification deleted")

@router.get("/preferences")
async def preferences_form(request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    return templates.TemplateResponse("notifications/preferences.html", {
        "request": request,
        "user": user,
        "prefs": notification_actions.get_preferences(db, user),
        "toggles": [field for field, value in DEFAULT_PREFERENCES.items() if isinstance(value, bool)]
    })

@router.post("/preferences")
async def update_preferences(request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    form = await request.form()
    # Unchecked boxes are absent from the post, so every toggle is explicit here
    data = {
        field: field in form
        for field, value in DEFAULT_PREFERENCES.items()
        if isinstance(value, bool)
    }
    data["quiet_start"] = form.get("quiet_start", "")
    data["quiet_end"] = form.get("quiet_end", "")
    notification_actions.update_preferences(db, user, **data)
    return deps.toast_redirect("/notifications/preferences", "Preferences saved")

@router.post("/phone")
async def update_phone(
    phone: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    notification_actions.update_phone(db, user, phone)
    return deps.toast_redirect("/notifications/preferences", "Phone number saved")
