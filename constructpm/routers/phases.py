from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Form, Request
from sqlalchemy.orm import Session

from constructpm.actions import bids as bid_actions
from constructpm.actions import checklists as checklist_actions
from constructpm.actions import comments as comment_actions
from constructpm.actions import dependencies as dependency_actions
from constructpm.actions import documents as document_actions
from constructpm.actions import lien_waivers as waiver_actions
from constructpm.actions import payment_apps as payment_actions
from constructpm.actions import phases as phase_actions
from constructpm.actions import photos as photo_actions
from constructpm.actions import punch_list as punch_actions
from constructpm.actions import staff as staff_actions
from constructpm.actions import voice_notes as voice_actions
from constructpm.actions.common import get_phase
from constructpm.core.permissions import ADMIN, can, can_manage_phase, can_review_phase
from constructpm.core.templates import templates
from constructpm.db.models.document import DOCUMENT_CATEGORIES, DOCUMENT_STATUSES
from constructpm.db.models.finance import PAYMENT_APP_STATUSES, WAIVER_STATUSES, WAIVER_TYPES
from constructpm.db.models.phase import PHASE_STATUSES, Phase
from constructpm.db.models.punch_list import PUNCH_PRIORITIES, PUNCH_STATUSES
from constructpm.db.models.user import User
from constructpm.routers import deps

router = APIRouter(
    prefix="/phases",
    tags=["phases"],
    dependencies=[Depends(deps.get_current_user)]
)

@router.get("/{id}")
async def phase_detail(id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    phase = get_phase(db, user, id)
    applications = payment_actions.list_applications(db, user, id)
    siblings = db.query(Phase).filter(Phase.project_id == phase.project_id, Phase.id != phase.id)\
        .order_by(Phase.sort_order, Phase.id).all()
    return templates.TemplateResponse("phases/detail.html", {
        "request": request,
        "user": user,
        "phase": phase,
        "project": phase.project,
        "documents": document_actions.list_documents(db, user, id),
        "photos": photo_actions.list_photos(db, user, id),
        "checklist": phase.checklist,
        "templates": checklist_actions.list_templates(db, user),
        "punch_items": punch_actions.list_items(db, user, id),
        "waivers": waiver_actions.list_waivers(db, user, id),
        "applications": applications,
        "payment_totals": payment_actions.phase_totals(applications),
        "bids": bid_actions.list_bids(db, user, id),
        "voice_notes": voice_actions.list_voice_notes(db, user, id),
        "predecessors": dependency_actions.phase_dependencies(db, user, id),
        "dependents": dependency_actions.phase_dependents(db, user, id),
        "blocked_until": dependency_actions.blocked_until(db, user, id),
        "sibling_phases": siblings,
        "comments": comment_actions.list_comments(db, user, id),
        "staff": staff_actions.list_staff(db, user) if can(user.role, "view", "staff") else [],
        "phase_statuses": PHASE_STATUSES,
        "document_categories": DOCUMENT_CATEGORIES,
        "document_statuses": DOCUMENT_STATUSES,
        "punch_priorities": PUNCH_PRIORITIES,
        "punch_statuses": PUNCH_STATUSES,
        "waiver_types": WAIVER_TYPES,
        "waiver_statuses": WAIVER_STATUSES,
        "payment_statuses": PAYMENT_APP_STATUSES,
        "can_update": can(user.role, "update", "phase"),
        "can_manage": can_manage_phase(user.role),
        "can_review": can_review_phase(user.role),
        "is_admin": user.role == ADMIN
    })

@router.post("/{id}/status")
async def update_phase_status(
    id: int,
    background_tasks: BackgroundTasks,
    status: str = Form(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    phase_actions.update_phase_status(db, user, id, status, background=background_tasks)
    return deps.toast_redirect(f"/phases/{id}", "Phase status updated")

@router.post("/{id}/dates")
async def update_phase_dates(
    id: int,
    request: Request,
    est_start: str = Form(""),
    est_end: str = Form(""),
    worst_start: Optional[str] = Form(None),
    worst_end: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    phase = phase_actions.update_phase_dates(db, user, id, est_start, est_end, worst_start, worst_end)
    return deps.toast_redirect(deps.back_url(request, f"/projects/{phase.project_id}"), "Dates updated")

@router.post("/{id}/edit")
async def update_phase_details(
    id: int,
    name: Optional[str] = Form(None),
    detail: Optional[str] = Form(None),
    is_milestone: bool = Form(False),
    progress: Optional[int] = Form(None),
    budget: Optional[float] = Form(None),
    actual_cost: Optional[float] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    phase_actions.update_phase_details(
        db, user, id,
        name=name, detail=detail, is_milestone=is_milestone,
        progress=progress, budget=budget, actual_cost=actual_cost
    )
    return deps.toast_redirect(f"/phases/{id}", "Phase updated")

@router.post("/{id}/delete")
async def delete_phase(id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    project_id = get_phase(db, user, id).project_id
    phase_actions.delete_phase(db, user, id)
    return deps.toast_redirect(f"/projects/{project_id}", "Phase deleted")

# Dependencies

@router.post("/{id}/dependencies")
async def add_dependency(
    id: int,
    depends_on_id: str = Form(""),
    lag_days: str = Form(""),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    dependency_actions.add_dependency(db, user, id, depends_on_id=depends_on_id, lag_days=lag_days)
    return deps.toast_redirect(f"/phases/{id}", "Dependency saved")

@router.post("/dependencies/{dependency_id}/delete")
async def remove_dependency(dependency_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    dependency_actions.remove_dependency(db, user, dependency_id)
    return deps.toast_redirect(deps.back_url(request), "Dependency removed")

# Comments

@router.post("/{id}/comments")
async def add_comment(
    id: int,
    background_tasks: BackgroundTasks,
    content: str = Form(""),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    comment_actions.add_comment(db, user, id, content, background=background_tasks)
    return deps.toast_redirect(f"/phases/{id}#comments", "Comment posted")

@router.post("/comments/{comment_id}/delete")
async def delete_comment(comment_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    comment_actions.delete_comment(db, user, comment_id)
    return deps.toast_redirect(deps.back_url(request), "Comment deleted")

# Staff assignments

@router.post("/{id}/assignments")
async def assign_staff(
    id: int,
    staff_id: int = Form(...),
    is_owner: bool = Form(False),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    phase_actions.assign_staff(db, user, id, staff_id, is_owner)
    return deps.toast_redirect(f"/phases/{id}", "Staff assigned")

@router.post("/assignments/{assignment_id}/delete")
async def unassign_staff(assignment_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    phase_actions.unassign_staff(db, user, assignment_id)
    return deps.toast_redirect(deps.back_url(request), "Staff removed")

# Checklists

@router.post("/{id}/checklist")
async def apply_template(
    id: int,
    template_id: int = Form(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    checklist_actions.apply_template(db, user, id, template_id)
    return deps.toast_redirect(f"/phases/{id}", "Checklist added")

@router.post("/checklists/{checklist_id}/items")
async def add_checklist_item(
    checklist_id: int,
    request: Request,
    title: str = Form(""),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    checklist_actions.add_custom_item(db, user, checklist_id, title)
    return deps.toast_redirect(deps.back_url(request), "Item added")

@router.post("/checklist-items/{item_id}/toggle")
async def toggle_checklist_item(
    item_id: int,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    item = checklist_actions.toggle_item(db, user, item_id, background=background_tasks)
    return deps.toast_redirect(deps.back_url(request, f"/phases/{item.checklist.phase_id}"))

@router.post("/checklist-items/{item_id}/delete")
async def delete_checklist_item(item_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    checklist_actions.delete_item(db, user, item_id)
    return deps.toast_redirect(deps.back_url(request), "Item deleted")

@router.get("/checklists/templates")
async def list_templates(request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    return templates.TemplateResponse("checklists/templates.html", {
        "request": request,
        "user": user,
        "templates": checklist_actions.list_templates(db, user),
        "can_create": can(user.role, "create", "checklist"),
        "can_delete": can(user.role, "delete", "checklist")
    })

@router.post("/checklists/templates")
async def create_template(
    name: str = Form(""),
    items: str = Form(""),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    # One item per line
    checklist_actions.create_template(db, user, name, items.splitlines())
    return deps.toast_redirect("/phases/checklists/templates", "Template created")

@router.post("/checklists/templates/{template_id}/delete")
async def delete_template(template_id: int, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    checklist_actions.delete_template(db, user, template_id)
    return deps.toast_redirect("/phases/checklists/templates", "Template deleted")
