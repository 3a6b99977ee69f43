from typing import List, Optional

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from constructpm.actions import api_keys as api_key_actions
from constructpm.actions import insights as insight_actions
from constructpm.actions import projects as project_actions
from constructpm.actions import reports as report_actions
from constructpm.core.permissions import check_admin
from constructpm.core.templates import templates
from constructpm.db.models.ai import AI_PROVIDERS
from constructpm.db.models.report import REPORT_FREQUENCIES
from constructpm.db.models.user import User
from constructpm.routers import deps
from constructpm.utils.ai import MODEL_PRICING

router = APIRouter(
    prefix="/settings",
    tags=["settings"],
    dependencies=[Depends(deps.get_current_user)]
)

WEEKDAYS = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

@router.get("/")
async def settings_home(user: User = Depends(deps.get_current_user)):
    check_admin(user)
    return deps.toast_redirect("/settings/api-keys")

# API keys

@router.get("/api-keys")
async def list_api_keys(request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    return templates.TemplateResponse("settings/api_keys.html", {
        "request": request,
        "user": user,
        "keys": api_key_actions.list_keys(db, user),
        "new_key": None
    })

@router.post("/api-keys")
async def create_api_key(
    request: Request,
    name: str = Form(""),
    expires_at: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    _, raw_key = api_key_actions.create_key(db, user, name, expires_at or None)
    # The raw key is rendered once and never again
    return templates.TemplateResponse("settings/api_keys.html", {
        "request": request,
        "user": user,
        "keys": api_key_actions.list_keys(db, user),
        "new_key": raw_key
    })

@router.post("/api-keys/{key_id}/revoke")
async def revoke_api_key(key_id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    api_key_actions.revoke_key(db, user, key_id)
    return deps.toast_redirect("/settings/api-keys", "API key revoked")

@router.post("/api-keys/{key_id}/delete")
async def delete_api_key(key_id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    api_key_actions.delete_key(db, user, key_id)
    return deps.toast_redirect("/settings/api-keys", "API key deleted")

# Report schedules

@router.get("/reports")
async def list_schedules(request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    return templates.TemplateResponse("settings/reports.html", {
        "request": request,
        "user": user,
        "schedules": report_actions.list_schedules(db, user),
        "projects": [row["project"] for row in project_actions.list_projects(db, user)],
        "frequencies": REPORT_FREQUENCIES,
        "weekdays": WEEKDAYS
    })

@router.post("/reports")
async def create_schedule(
    frequency: str = Form("WEEKLY"),
    day_of_week: Optional[str] = Form(None),
    day_of_month: Optional[str] = Form(None),
    send_hour: Optional[str] = Form(None),
    recipients: str = Form(""),
    include_projects: List[int] = Form([]),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    # Comma or newline separated addresses
    addresses = [r.strip() for r in recipients.replace("\n", ",").split(",") if r.strip()]
    report_actions.create_schedule(
        db, user,
        frequency=frequency, day_of_week=day_of_week, day_of_month=day_of_month,
        send_hour=send_hour, recipients=addresses, include_projects=include_projects
    )
    return deps.toast_redirect("/settings/reports", "Report schedule created")

@router.post("/reports/{schedule_id}/toggle")
async def toggle_schedule(
    schedule_id: int,
    active: bool = Form(False),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    report_actions.toggle_schedule(db, user, schedule_id, active)
    return deps.toast_redirect("/settings/reports", "Schedule updated")

@router.post("/reports/{schedule_id}/delete")
async def delete_schedule(schedule_id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    report_actions.delete_schedule(db, user, schedule_id)
    return deps.toast_redirect("/settings/reports", "Schedule deleted")

# AI

@router.get("/ai")
async def ai_settings(request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    return templates.TemplateResponse("settings/ai.html", {
        "request": request,
        "user": user,
        "ai": insight_actions.get_settings(db, user),
        "usage": insight_actions.usage_summary(db, user),
        "providers": AI_PROVIDERS,
        "models": list(MODEL_PRICING)
    })

@router.post("/ai")
async def update_ai_settings(
    enabled: bool = Form(False),
    provider: str = Form("openai"),
    model: str = Form(""),
    max_tokens: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    insight_actions.update_settings(db, user, enabled=enabled, provider=provider, model=model, max_tokens=max_tokens)
    return deps.toast_redirect("/settings/ai", "AI settings saved")
