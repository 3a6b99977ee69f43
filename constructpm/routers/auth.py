from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status, Form, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from constructpm.actions import users as user_actions
from constructpm.core.config import settings
from constructpm.core.security import create_access_token
from constructpm.core.templates import templates
from constructpm.db.models.user import User
from constructpm.routers import deps

router = APIRouter()

def _session_response(db_user: User, url: str = "/dashboard") -> RedirectResponse:
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_access_token(
        data={"sub": db_user.email, "role": db_user.role},
        expires_delta=access_token_expires
    )
    response = RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(key="access_token", value=f"Bearer {access_token}", httponly=True, samesite="lax")
    return response

@router.post("/login")
async def login(
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(deps.get_db)
):
    db_user = user_actions.authenticate(db, email, password)
    if not db_user:
        return RedirectResponse(url="/?error=invalid_credentials", status_code=status.HTTP_303_SEE_OTHER)
    return _session_response(db_user)

@router.get("/logout")
async def logout():
    response = RedirectResponse(url="/", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie("access_token")
    return response

@router.get("/signup")
async def signup_form(request: Request):
    return templates.TemplateResponse("signup.html", {"request": request, "error": None, "form": {}})

@router.post("/signup")
async def signup(
    request: Request,
    organization_name: str = Form(""),
    full_name: str = Form(""),
    email: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(deps.get_db)
):
    form = {"organization_name": organization_name, "full_name": full_name, "email": email}
    try:
        admin = user_actions.signup(db, password=password, **form)
    except HTTPException as e:
        return templates.TemplateResponse(
            "signup.html",
            {"request": request, "error": e.detail, "form": form},
            status_code=e.status_code
        )
    return _session_response(admin)
