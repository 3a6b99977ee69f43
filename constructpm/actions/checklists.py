from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from constructpm.actions.common import (
    bad_request, forbidden, get_phase, not_found, project_member_ids, require_user,
)
from constructpm.core.dates import utcnow
from constructpm.core.permissions import can
from constructpm.db.models.checklist import Checklist, ChecklistItem, ChecklistTemplate, ChecklistTemplateItem
from constructpm.db.models.user import User
from constructpm.utils.activity import log_activity
from constructpm.utils.notifications import notify


def list_templates(db: Session, user: User) -> List[ChecklistTemplate]:
    require_user(user)
    return db.query(ChecklistTemplate).filter(ChecklistTemplate.organization_id == user.organization_id)\
        .order_by(ChecklistTemplate.name).all()


def create_template(db: Session, user: User, name: str, items: List[str]) -> ChecklistTemplate:
    require_user(user)
    if not can(user.role, "create", "checklist"):
        raise forbidden()
    name = (name or "").strip()
    titles = [t.strip() for t in items if t and t.strip()]
    if not name:
        raise bad_request("Template name is required")
    if not titles:
        raise bad_request("A template needs at least one item")

    template = ChecklistTemplate(organization_id=user.organization_id, name=name[:200])
    template.items = [ChecklistTemplateItem(title=title[:500], order=i) for i, title in enumerate(titles)]
    db.add(template)
    db.commit()
    db.refresh(template)
    return template


def delete_template(db: Session, user: User, template_id: int) -> None:
    require_user(user)
    if not can(user.role, "delete", "checklist"):
        raise forbidden()
    template = db.query(ChecklistTemplate).filter(
        ChecklistTemplate.id == template_id,
        ChecklistTemplate.organization_id == user.organization_id,
    ).first()
    if not template:
        raise not_found("Template")
    db.delete(template)
    db.commit()


def apply_template(db: Session, user: User, phase_id: int, template_id: int) -> Checklist:
    require_user(user)
    if not can(user.role, "create", "checklist"):
        raise forbidden()
    phase = get_phase(db, user, phase_id)
    if db.query(Checklist).filter(Checklist.phase_id == phase.id).first():
        raise bad_request("Phase already has a checklist")
    template = db.query(ChecklistTemplate).filter(
        ChecklistTemplate.id == template_id,
        ChecklistTemplate.organization_id == user.organization_id,
    ).first()
    if not template:
        raise not_found("Template")

    checklist = Checklist(phase_id=phase.id, template_id=template.id, name=template.name)
    checklist.items = [ChecklistItem(title=item.title, order=item.order) for item in template.items]
    db.add(checklist)
    db.commit()
    db.refresh(checklist)
    return checklist


def _get_item(db: Session, user: User, item_id: int) -> ChecklistItem:
    require_user(user)
    item = db.query(ChecklistItem).filter(ChecklistItem.id == item_id).first()
    if not item:
        raise not_found("Item")
    get_phase(db, user, item.checklist.phase_id)
    return item


def toggle_item(db: Session, user: User, item_id: int, background=None) -> ChecklistItem:
    """
    Flip an item's completion. When the last open item is ticked, project
    members get a CHECKLIST_COMPLETED notification.
    """
    require_user(user)
    if not can(user.role, "update", "checklist"):
        raise forbidden()
    item = _get_item(db, user, item_id)

    was_completed = bool(item.completed)
    previous = {
        "itemId": item.id,
        "wasCompleted": was_completed,
        "completedById": item.completed_by_id,
        "completedAt": item.completed_at.isoformat() if item.completed_at else None,
    }
    item.completed = not was_completed
    item.completed_at = utcnow() if item.completed else None
    item.completed_by_id = user.id if item.completed else None
    db.commit()

    checklist = item.checklist
    phase = checklist.phase
    log_activity(
        db, user, "CHECKLIST_ITEM_TOGGLED",
        f'{"Completed" if item.completed else "Reopened"} "{item.title}" on {phase.name}',
        project_id=phase.project_id, data=previous,
    )

    if item.completed and all(i.completed for i in checklist.items):
        notify(
            db, "CHECKLIST_COMPLETED", f"Checklist complete: {phase.name}",
            f"Every checklist item on {phase.name} is done",
            project_member_ids(db, phase.project_id), actor_id=user.id,
            data={"projectId": phase.project_id, "phaseId": phase.id},
            background=background,
        )
    return item


def add_custom_item(db: Session, user: User, checklist_id: int, title: str) -> ChecklistItem:
    require_user(user)
    if not can(user.role, "create", "checklist"):
        raise forbidden()
    checklist = db.query(Checklist).filter(Checklist.id == checklist_id).first()
    if not checklist:
        raise not_found("Checklist")
    get_phase(db, user, checklist.phase_id)
    title = (title or "").strip()
    if not title:
        raise bad_request("Title is required")

    max_order = db.query(func.max(ChecklistItem.order)).filter(ChecklistItem.checklist_id == checklist.id).scalar()
    item = ChecklistItem(checklist_id=checklist.id, title=title[:500], order=(max_order if max_order is not None else -1) + 1)
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def delete_item(db: Session, user: User, item_id: int) -> None:
    require_user(user)
    if not can(user.role, "delete", "checklist"):
        raise forbidden()
    item = _get_item(db, user, item_id)
    db.delete(item)
    db.commit()
