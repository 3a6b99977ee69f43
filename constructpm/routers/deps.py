from typing import Optional
from urllib.parse import quote

from fastapi import Depends, HTTPException, status, Request
from fastapi.responses import RedirectResponse
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from constructpm.actions.api_keys import verify_key
from constructpm.core.config import settings
from constructpm.db.models.api_key import ApiKey
from constructpm.db.models.user import User
from constructpm.db.session import SessionLocal

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def _login_redirect(detail: str, error: str):
    return HTTPException(
        status_code=status.HTTP_303_SEE_OTHER,
        detail=detail,
        headers={"Location": f"/?error={error}"}
    )

async def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    token = request.cookies.get("access_token")

    if not token:
        raise _login_redirect("Not authenticated", "login_required")

    # Remove "Bearer " prefix if present
    if token.startswith("Bearer "):
        token = token.split(" ")[1]

    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        email: str = payload.get("sub")
        if email is None:
            raise _login_redirect("Invalid credential", "invalid_token")
    except JWTError:
        raise _login_redirect("Could not validate credentials", "invalid_token")

    user = db.query(User).filter(User.email == email).first()
    if user is None or not user.is_active:
        raise _login_redirect("User not found", "user_not_found")

    return user

async def get_api_key(request: Request, db: Session = Depends(get_db)) -> ApiKey:
    """Bearer API key for the JSON API."""
    header = request.headers.get("Authorization", "")
    raw_key = header[7:].strip() if header.startswith("Bearer ") else None
    api_key = verify_key(db, raw_key)
    if api_key is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"}
        )
    return api_key

def toast_redirect(url: str, message: Optional[str] = None, toast_type: str = "success") -> RedirectResponse:
    response = RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)
    if message:
        # Cookie values cannot carry spaces or quotes unescaped
        response.set_cookie(key="toast_message", value=quote(message))
        response.set_cookie(key="toast_type", value=toast_type)
    return response

def back_url(request: Request, fallback: str = "/dashboard") -> str:
    """Same-site Referer, so failed form posts land back on their page."""
    referer = request.headers.get("referer")
    base = str(request.base_url)
    if referer and referer.startswith(base):
        return "/" + referer[len(base):]
    return fallback
