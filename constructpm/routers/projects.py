from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Form, Request
from sqlalchemy.orm import Session

from constructpm.actions import daily_logs as daily_log_actions
from constructpm.actions import dependencies as dependency_actions
from constructpm.actions import members as member_actions
from constructpm.actions import phases as phase_actions
from constructpm.actions import projects as project_actions
from constructpm.actions import punch_list as punch_actions
from constructpm.core.dates import utcnow
from constructpm.core.permissions import ADMIN, can, can_create_project, can_manage_phase
from constructpm.core.templates import templates
from constructpm.db.models.project import MEMBER_ROLES, PROJECT_STATUSES
from constructpm.db.models.user import User
from constructpm.routers import deps
from constructpm.utils.gantt import gantt_links, gantt_rows, month_ticks

router = APIRouter(
    prefix="/projects",
    tags=["projects"],
    dependencies=[Depends(deps.get_current_user)]
)

@router.get("/")
async def list_projects(request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    return templates.TemplateResponse("projects/list.html", {
        "request": request,
        "user": user,
        "projects": project_actions.list_projects(db, user),
        "can_create": can_create_project(user.role)
    })

@router.get("/new")
async def new_project_form(request: Request, user: User = Depends(deps.get_current_user)):
    if not can_create_project(user.role):
        return deps.toast_redirect("/projects", "You cannot create projects", "error")
    return templates.TemplateResponse("projects/form.html", {"request": request, "user": user, "project": None})

@router.post("/new")
async def create_project(
    name: str = Form(""),
    description: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    plan_approval: Optional[str] = Form(None),
    budget: Optional[str] = Form(None),
    phase_name: List[str] = Form([]),
    phase_start: List[str] = Form([]),
    phase_end: List[str] = Form([]),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    # Wizard rows arrive as parallel lists; rows without a name are blank
    phases = [
        {"name": n, "est_start": s, "est_end": e}
        for n, s, e in zip(phase_name, phase_start, phase_end)
        if n.strip()
    ]
    project = project_actions.create_project(
        db, user,
        name=name, description=description, address=address,
        plan_approval=plan_approval, budget=budget, phases=phases
    )
    return deps.toast_redirect(f"/projects/{project.id}", "Project created")

@router.get("/{id}")
async def project_detail(id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    detail = project_actions.get_project_detail(db, user, id)
    phases = detail["phases"]
    rows = gantt_rows(phases)
    return templates.TemplateResponse("projects/detail.html", {
        "request": request,
        "user": user,
        **detail,
        "phase_rows": phase_actions.list_phases(db, user, id),
        "gantt": rows,
        "links": gantt_links(rows, dependency_actions.project_dependencies(db, user, id)),
        "daily_logs": daily_log_actions.list_logs(db, user, id),
        "today": utcnow().date(),
        "can_log": can(user.role, "update", "phase"),
        "ticks": month_ticks(phases),
        "members": member_actions.list_members(db, user, id) if can(user.role, "view", "member") else [],
        "punch_summary": punch_actions.project_summary(db, user, id),
        "statuses": PROJECT_STATUSES,
        "member_roles": MEMBER_ROLES,
        "can_update": can(user.role, "update", "project"),
        "can_manage_members": can(user.role, "create", "member"),
        "can_manage_phase": can_manage_phase(user.role),
        "can_delete": user.role == ADMIN
    })

@router.get("/{id}/edit")
async def edit_project_form(id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    detail = project_actions.get_project_detail(db, user, id)
    return templates.TemplateResponse("projects/form.html", {"request": request, "user": user, "project": detail["project"]})

@router.post("/{id}/edit")
async def update_project(
    id: int,
    name: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    plan_approval: Optional[str] = Form(None),
    budget: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    project_actions.update_project(
        db, user, id,
        name=name, description=description, address=address, plan_approval=plan_approval, budget=budget
    )
    return deps.toast_redirect(f"/projects/{id}", "Project updated")

@router.post("/{id}/status")
async def update_project_status(
    id: int,
    status: str = Form(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    project_actions.update_project_status(db, user, id, status)
    return deps.toast_redirect(f"/projects/{id}", "Status updated")

@router.post("/{id}/delete")
async def delete_project(id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    project_actions.delete_project(db, user, id)
    return deps.toast_redirect("/projects", "Project deleted")

# Phases

@router.post("/{id}/phases")
async def create_phase(
    id: int,
    name: str = Form(""),
    detail: Optional[str] = Form(None),
    est_start: str = Form(""),
    est_end: str = Form(""),
    worst_start: Optional[str] = Form(None),
    worst_end: Optional[str] = Form(None),
    is_milestone: bool = Form(False),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    phase_actions.create_phase(
        db, user, id,
        name=name, detail=detail, est_start=est_start, est_end=est_end,
        worst_start=worst_start, worst_end=worst_end, is_milestone=is_milestone
    )
    return deps.toast_redirect(f"/projects/{id}", "Phase added")

# Daily logs

@router.post("/{id}/daily-logs")
async def create_daily_log(
    id: int,
    date: str = Form(""),
    weather: Optional[str] = Form(None),
    temp_high: Optional[str] = Form(None),
    temp_low: Optional[str] = Form(None),
    crew_count: Optional[str] = Form(None),
    equipment: Optional[str] = Form(None),
    work_summary: str = Form(""),
    issues: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    daily_log_actions.create_log(
        db, user, id,
        date=date, weather=weather, temp_high=temp_high, temp_low=temp_low, crew_count=crew_count,
        equipment=equipment, work_summary=work_summary, issues=issues, notes=notes
    )
    return deps.toast_redirect(f"/projects/{id}", "Daily log saved")

@router.post("/daily-logs/{log_id}/delete")
async def delete_daily_log(log_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    daily_log_actions.delete_log(db, user, log_id)
    return deps.toast_redirect(deps.back_url(request), "Daily log deleted")

# Members

@router.post("/{id}/members")
async def add_member(
    id: int,
    background_tasks: BackgroundTasks,
    email: str = Form(""),
    role: str = Form("VIEWER"),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    member_actions.add_member(db, user, id, email, role, background=background_tasks)
    return deps.toast_redirect(f"/projects/{id}", "Member added")

@router.post("/{id}/members/{member_id}/role")
async def update_member_role(
    id: int,
    member_id: int,
    role: str = Form(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    member_actions.update_member_role(db, user, id, member_id, role)
    return deps.toast_redirect(f"/projects/{id}", "Member role updated")

@router.post("/{id}/members/{member_id}/remove")
async def remove_member(id: int, member_id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    member_actions.remove_member(db, user, id, member_id)
    return deps.toast_redirect(f"/projects/{id}", "Member removed")
