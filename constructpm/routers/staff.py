from typing import List, Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from constructpm.actions import staff as staff_actions
from constructpm.core.dates import utcnow
from constructpm.core.permissions import can
from constructpm.core.templates import templates
from constructpm.db.models.staff import CONTACT_TYPES
from constructpm.db.models.user import User
from constructpm.routers import deps

router = APIRouter(
    prefix="/staff",
    tags=["staff"],
    dependencies=[Depends(deps.get_current_user)]
)

def _org_users(db: Session, user: User):
    return db.query(User).filter(User.organization_id == user.organization_id, User.is_active == True)\
        .order_by(User.full_name).all()

@router.get("/")
async def list_staff(
    request: Request,
    contact_type: Optional[str] = None,
    q: Optional[str] = None,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    return templates.TemplateResponse("staff/list.html", {
        "request": request,
        "user": user,
        "staff": staff_actions.list_staff(db, user, contact_type=contact_type or None, q=q),
        "contact_types": CONTACT_TYPES,
        "selected_type": contact_type,
        "q": q or "",
        "can_create": can(user.role, "create", "staff"),
        "can_update": can(user.role, "update", "staff"),
        "can_delete": can(user.role, "delete", "staff")
    })

@router.get("/export")
async def export_staff(db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    csv_text = staff_actions.export_staff_csv(db, user)
    filename = f"staff-{utcnow().strftime('%Y%m%d')}.csv"
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )

@router.get("/new")
async def new_staff_form(request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    return templates.TemplateResponse("staff/form.html", {
        "request": request, "user": user, "contact": None, "contact_types": CONTACT_TYPES,
        "org_users": _org_users(db, user)
    })

@router.post("/new")
async def create_staff(
    name: str = Form(""),
    company: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    contact_type: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    user_id: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    staff_actions.create_staff(
        db, user,
        name=name, company=company, role=role, contact_type=contact_type,
        email=email, phone=phone, notes=notes, user_id=user_id
    )
    return deps.toast_redirect("/staff", "Contact added")

@router.get("/{id}/edit")
async def edit_staff_form(id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    return templates.TemplateResponse("staff/form.html", {
        "request": request,
        "user": user,
        "contact": staff_actions.get_staff(db, user, id),
        "contact_types": CONTACT_TYPES,
        "org_users": _org_users(db, user)
    })

@router.post("/{id}/edit")
async def update_staff(
    id: int,
    name: str = Form(""),
    company: Optional[str] = Form(None),
    role: Optional[str] = Form(None),
    contact_type: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    user_id: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    staff_actions.update_staff(
        db, user, id,
        name=name, company=company, role=role, contact_type=contact_type,
        email=email, phone=phone, notes=notes, user_id=user_id
    )
    return deps.toast_redirect("/staff", "Contact updated")

@router.post("/{id}/delete")
async def delete_staff(id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    staff_actions.delete_staff(db, user, id)
    return deps.toast_redirect("/staff", "Contact deleted")

@router.post("/bulk")
async def bulk_action(
    ids: List[int] = Form([]),
    action: str = Form(...),
    contact_type: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    if action == "delete":
        count = staff_actions.bulk_delete_staff(db, user, ids)
        return deps.toast_redirect("/staff", f"Deleted {count} contacts")
    count = staff_actions.bulk_update_type(db, user, ids, contact_type or "")
    return deps.toast_redirect("/staff", f"Updated {count} contacts")
