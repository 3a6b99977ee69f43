from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from constructpm.actions import users as user_actions
from constructpm.core.permissions import ROLES, check_admin
from constructpm.core.templates import templates
from constructpm.db.models.user import User
from constructpm.routers import deps

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(deps.get_current_user)]
)

@router.get("/")
async def list_users(
    request: Request,
    page: int = 1,
    limit: int = 20,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    result = user_actions.list_users(db, user, page=page, limit=limit)
    return templates.TemplateResponse("users/list.html", {
        "request": request,
        "user": user,
        "users": result["users"],
        "page": result["page"],
        "total_pages": result["pages"],
        "total_records": result["total"]
    })

@router.get("/new")
async def new_user_form(request: Request, user: User = Depends(deps.get_current_user)):
    check_admin(user)
    return templates.TemplateResponse("users/form.html", {"request": request, "user": user, "edit_user": None, "roles": ROLES})

@router.post("/new")
async def create_user(
    email: str = Form(""),
    password: str = Form(""),
    full_name: str = Form(""),
    role: str = Form("VIEWER"),
    phone: Optional[str] = Form(None),
    is_active: bool = Form(False),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    user_actions.create_user(
        db, user,
        email=email, password=password, full_name=full_name, role=role, phone=phone, is_active=is_active
    )
    return deps.toast_redirect("/users", "User created")

@router.get("/{id}/edit")
async def edit_user_form(id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    edit_user = user_actions.get_user(db, user, id)
    return templates.TemplateResponse("users/form.html", {"request": request, "user": user, "edit_user": edit_user, "roles": ROLES})

@router.post("/{id}/edit")
async def update_user(
    id: int,
    email: str = Form(""),
    password: Optional[str] = Form(None),
    full_name: str = Form(""),
    role: str = Form("VIEWER"),
    phone: Optional[str] = Form(None),
    is_active: bool = Form(False),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    user_actions.update_user(
        db, user, id,
        email=email, password=password, full_name=full_name, role=role, phone=phone, is_active=is_active
    )
    return deps.toast_redirect("/users", "User updated")

@router.post("/{id}/deactivate")
async def deactivate_user(id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    user_actions.deactivate_user(db, user, id)
    return deps.toast_redirect("/users", "User deactivated")
