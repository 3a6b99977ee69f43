import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from constructpm.actions import quickbooks as qb_actions
from constructpm.core.permissions import can
from constructpm.core.templates import templates
from constructpm.db.models.quickbooks import SYNC_TYPES
from constructpm.db.models.user import User
from constructpm.routers import deps

router = APIRouter(
    prefix="/quickbooks",
    tags=["quickbooks"],
    dependencies=[Depends(deps.get_current_user)]
)

STATE_COOKIE = "qb_oauth_state"

@router.get("/")
async def quickbooks_status(request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    return templates.TemplateResponse("quickbooks/index.html", {
        "request": request,
        "user": user,
        "connection": qb_actions.get_connection(db, user),
        "logs": qb_actions.get_sync_logs(db, user),
        "sync_types": SYNC_TYPES,
        "can_manage": can(user.role, "manage", "phase")
    })

@router.get("/connect")
async def connect(user: User = Depends(deps.get_current_user)):
    result = qb_actions.get_auth_url(user)
    if not result.success:
        return deps.toast_redirect("/quickbooks", result.error, "error")
    response = RedirectResponse(url=result.data["url"], status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(key=STATE_COOKIE, value=result.data["state"], httponly=True, max_age=600, samesite="lax")
    return response

@router.get("/callback")
async def callback(
    request: Request,
    code: Optional[str] = None,
    realmId: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    if error:
        response = deps.toast_redirect("/quickbooks", f"QuickBooks authorization failed: {error}", "error")
    else:
        expected = request.cookies.get(STATE_COOKIE)
        if not expected or not state or not secrets.compare_digest(expected, state):
            response = deps.toast_redirect("/quickbooks", "Invalid OAuth state", "error")
        else:
            result = qb_actions.exchange_code(db, user, code, realmId)
            if result.success:
                response = deps.toast_redirect("/quickbooks", "QuickBooks connected")
            else:
                response = deps.toast_redirect("/quickbooks", result.error, "error")
    response.delete_cookie(STATE_COOKIE)
    return response

@router.post("/sync")
async def sync(
    sync_type: str = Form("full"),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    result = qb_actions.trigger_sync(db, user, sync_type)
    if not result.success:
        return deps.toast_redirect("/quickbooks", result.error, "error")
    toast_type = "success" if result.data["status"] == "success" else "error"
    return deps.toast_redirect("/quickbooks", f"Sync {result.data['status']}: {result.data['items_synced']} items", toast_type)

@router.post("/settings")
async def update_settings(
    sync_enabled: bool = Form(False),
    sync_invoices: bool = Form(False),
    sync_expenses: bool = Form(False),
    sync_vendors: bool = Form(False),
    sync_customers: bool = Form(False),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    result = qb_actions.update_sync_settings(
        db, user,
        sync_enabled=sync_enabled, sync_invoices=sync_invoices, sync_expenses=sync_expenses,
        sync_vendors=sync_vendors, sync_customers=sync_customers
    )
    if not result.success:
        return deps.toast_redirect("/quickbooks", result.error, "error")
    return deps.toast_redirect("/quickbooks", "Sync settings saved")

@router.post("/disconnect")
async def disconnect(db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    result = qb_actions.disconnect(db, user)
    if not result.success:
        return deps.toast_redirect("/quickbooks", result.error, "error")
    return deps.toast_redirect("/quickbooks", "QuickBooks disconnected")
