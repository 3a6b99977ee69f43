import logging
from urllib.parse import quote

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from constructpm.core.config import settings, BASE_DIR
from constructpm.core.templates import templates
from constructpm.db.base import Base
from constructpm.db.session import engine
from constructpm.routers import (
    activity, api, auth, dashboard, files, finance, insights, notifications,
    phases, projects, quickbooks, staff, users,
)
from constructpm.routers import settings as settings_router
from constructpm.routers.deps import back_url

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

# Mount static files (uploads live underneath)
app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # Login redirects from deps.get_current_user
    if exc.status_code == status.HTTP_303_SEE_OTHER and exc.headers and "Location" in exc.headers:
        return RedirectResponse(url=exc.headers["Location"], status_code=status.HTTP_303_SEE_OTHER)
    if request.url.path.startswith(settings.API_V1_STR):
        return JSONResponse({"detail": exc.detail}, status_code=exc.status_code, headers=exc.headers)
    if request.method == "POST":
        # Form posts go back to their page with the message as a toast
        response = RedirectResponse(url=back_url(request), status_code=status.HTTP_303_SEE_OTHER)
        response.set_cookie(key="toast_message", value=quote(str(exc.detail)))
        response.set_cookie(key="toast_type", value="error")
        return response
    return templates.TemplateResponse(
        "error.html",
        {"request": request, "status_code": exc.status_code, "detail": exc.detail},
        status_code=exc.status_code
    )

@app.get("/")
async def read_root(request: Request, error: str = None):
    return templates.TemplateResponse("index.html", {"request": request, "error": error})

app.include_router(auth.router)
app.include_router(dashboard.router)
app.include_router(projects.router)
app.include_router(insights.router)
app.include_router(phases.router)
app.include_router(files.router)
app.include_router(finance.router)
app.include_router(activity.router)
app.include_router(notifications.router)
app.include_router(staff.router)
app.include_router(settings_router.router)
app.include_router(quickbooks.router)
app.include_router(users.router)
app.include_router(api.router)

# Create tables on startup (Simple approach)
@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    logger.info("%s started", settings.PROJECT_NAME)
