import csv
import io
from typing import List, Optional

from sqlalchemy.orm import Session

from constructpm.actions.common import bad_request, forbidden, not_found, require_user, validate
from constructpm.core.permissions import can
from constructpm.db.models.punch_list import PunchListItem
from constructpm.db.models.staff import CONTACT_TYPES, Staff
from constructpm.db.models.user import User
from constructpm.schemas import StaffInput

CSV_HEADER = "Name,Company,Role,Type,Email,Phone,Notes"


def list_staff(db: Session, user: User, contact_type: Optional[str] = None, q: Optional[str] = None) -> List[Staff]:
    require_user(user)
    if not can(user.role, "view", "staff"):
        raise forbidden()
    query = db.query(Staff).filter(Staff.organization_id == user.organization_id)
    if contact_type:
        query = query.filter(Staff.contact_type == contact_type)
    if q:
        like = f"%{q.strip()}%"
        query = query.filter(Staff.name.ilike(like) | Staff.company.ilike(like) | Staff.email.ilike(like))
    return query.order_by(Staff.contact_type, Staff.name).all()


def get_staff(db: Session, user: User, staff_id: int) -> Staff:
    require_user(user)
    staff = db.query(Staff).filter(Staff.id == staff_id, Staff.organization_id == user.organization_id).first()
    if not staff:
        raise not_found("Staff")
    return staff


def _check_linked_user(db: Session, user: User, user_id: Optional[int]):
    if user_id is None:
        return
    linked = db.query(User).filter(User.id == user_id, User.organization_id == user.organization_id).first()
    if not linked:
        raise not_found("User")


def create_staff(db: Session, user: User, **data) -> Staff:
    require_user(user)
    if not can(user.role, "create", "staff"):
        raise forbidden()
    payload = validate(StaffInput, **data)
    _check_linked_user(db, user, payload.user_id)

    staff = Staff(organization_id=user.organization_id, **payload.model_dump())
    db.add(staff)
    db.commit()
    db.refresh(staff)
    return staff


def update_staff(db: Session, user: User, staff_id: int, **data) -> Staff:
    """Full replace of the editable fields; blanks clear the stored value."""
    require_user(user)
    if not can(user.role, "update", "staff"):
        raise forbidden()
    staff = get_staff(db, user, staff_id)
    payload = validate(StaffInput, **data)
    _check_linked_user(db, user, payload.user_id)

    for field, value in payload.model_dump().items():
        setattr(staff, field, value)
    db.commit()
    return staff


def _unassign_punch_items(db: Session, staff_ids: List[int]) -> None:
    if staff_ids:
        db.query(PunchListItem).filter(PunchListItem.assigned_to_id.in_(staff_ids))\
            .update({PunchListItem.assigned_to_id: None}, synchronize_session=False)


def delete_staff(db: Session, user: User, staff_id: int) -> None:
    require_user(user)
    if not can(user.role, "delete", "staff"):
        raise forbidden()
    staff = get_staff(db, user, staff_id)
    _unassign_punch_items(db, [staff.id])
    db.delete(staff)
    db.commit()


def bulk_delete_staff(db: Session, user: User, ids: List[int]) -> int:
    require_user(user)
    if not can(user.role, "delete", "staff"):
        raise forbidden()
    rows = db.query(Staff).filter(Staff.id.in_(ids or [0]), Staff.organization_id == user.organization_id).all()
    _unassign_punch_items(db, [staff.id for staff in rows])
    for staff in rows:
        db.delete(staff)
    db.commit()
    return len(rows)


def bulk_update_type(db: Session, user: User, ids: List[int], contact_type: str) -> int:
    require_user(user)
    if not can(user.role, "update", "staff"):
        raise forbidden()
    if contact_type not in CONTACT_TYPES:
        raise bad_request("Invalid type")
    updated = db.query(Staff).filter(
        Staff.id.in_(ids or [0]),
        Staff.organization_id == user.organization_id,
    ).update({"contact_type": contact_type}, synchronize_session=False)
    db.commit()
    return updated


def export_staff_csv(db: Session, user: User) -> str:
    require_user(user)
    if not can(user.role, "view", "staff"):
        raise forbidden()
    staff = db.query(Staff).filter(Staff.organization_id == user.organization_id)\
        .order_by(Staff.contact_type, Staff.name).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for s in staff:
        writer.writerow([s.name, s.company, s.role, s.contact_type, s.email, s.phone, s.notes])
    rows = buffer.getvalue().rstrip("\n")
    return CSV_HEADER + ("\n" + rows if rows else "")
