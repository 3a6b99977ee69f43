from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from sqlalchemy.orm import Session

from constructpm.actions import bids as bid_actions
from constructpm.actions import lien_waivers as waiver_actions
from constructpm.actions import payment_apps as payment_actions
from constructpm.actions import punch_list as punch_actions
from constructpm.db.models.user import User
from constructpm.routers import deps

router = APIRouter(
    tags=["finance"],
    dependencies=[Depends(deps.get_current_user)]
)

# Punch list

@router.post("/phases/{phase_id}/punch-items")
async def create_punch_item(
    phase_id: int,
    title: str = Form(""),
    description: Optional[str] = Form(None),
    priority: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    assigned_to_id: Optional[str] = Form(None),
    due_date: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    punch_actions.create_item(
        db, user, phase_id,
        title=title, description=description, priority=priority,
        location=location, assigned_to_id=assigned_to_id, due_date=due_date
    )
    return deps.toast_redirect(f"/phases/{phase_id}", "Punch item added")

@router.post("/punch-items/{item_id}/status")
async def update_punch_status(
    item_id: int,
    status: str = Form(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    item = punch_actions.update_status(db, user, item_id, status)
    return deps.toast_redirect(f"/phases/{item.phase_id}", "Punch item updated")

@router.post("/punch-items/{item_id}/edit")
async def update_punch_item(
    item_id: int,
    title: Optional[str] = Form(None),
    description: str = Form(""),
    priority: Optional[str] = Form(None),
    location: str = Form(""),
    assigned_to_id: str = Form(""),
    due_date: str = Form(""),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    item = punch_actions.update_item(
        db, user, item_id,
        title=title, description=description, priority=priority,
        location=location, assigned_to_id=assigned_to_id, due_date=due_date
    )
    return deps.toast_redirect(f"/phases/{item.phase_id}", "Punch item updated")

@router.post("/punch-items/{item_id}/delete")
async def delete_punch_item(item_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    punch_actions.delete_item(db, user, item_id)
    return deps.toast_redirect(deps.back_url(request), "Punch item deleted")

# Lien waivers

@router.post("/phases/{phase_id}/lien-waivers")
async def create_waiver(
    phase_id: int,
    waiver_type: str = Form(""),
    vendor_name: str = Form(""),
    amount: str = Form(""),
    through_date: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    waiver_actions.create_waiver(
        db, user, phase_id,
        waiver_type=waiver_type, vendor_name=vendor_name, amount=amount,
        through_date=through_date, description=description
    )
    return deps.toast_redirect(f"/phases/{phase_id}", "Lien waiver added")

@router.post("/lien-waivers/{waiver_id}/status")
async def update_waiver_status(
    waiver_id: int,
    status: str = Form(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    waiver = waiver_actions.update_waiver_status(db, user, waiver_id, status)
    return deps.toast_redirect(f"/phases/{waiver.phase_id}", "Lien waiver updated")

@router.post("/lien-waivers/{waiver_id}/delete")
async def delete_waiver(waiver_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    waiver_actions.delete_waiver(db, user, waiver_id)
    return deps.toast_redirect(deps.back_url(request), "Lien waiver deleted")

# Payment applications

@router.post("/phases/{phase_id}/payment-applications")
async def create_application(
    phase_id: int,
    period_start: str = Form(""),
    period_end: str = Form(""),
    scheduled_value: Optional[str] = Form(None),
    work_completed: Optional[str] = Form(None),
    materials_stored: Optional[str] = Form(None),
    retainage: Optional[str] = Form(None),
    previous_payments: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    payment_actions.create_application(
        db, user, phase_id,
        period_start=period_start, period_end=period_end,
        scheduled_value=scheduled_value, work_completed=work_completed,
        materials_stored=materials_stored, retainage=retainage,
        previous_payments=previous_payments, notes=notes
    )
    return deps.toast_redirect(f"/phases/{phase_id}", "Payment application created")

@router.post("/payment-applications/{application_id}/status")
async def update_application_status(
    application_id: int,
    status: str = Form(...),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    application = payment_actions.update_application_status(db, user, application_id, status)
    return deps.toast_redirect(f"/phases/{application.phase_id}", "Payment application updated")

@router.post("/payment-applications/{application_id}/delete")
async def delete_application(application_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    payment_actions.delete_application(db, user, application_id)
    return deps.toast_redirect(deps.back_url(request), "Payment application deleted")

# Subcontractor bids

@router.post("/phases/{phase_id}/bids")
async def create_bid(
    phase_id: int,
    company_name: str = Form(""),
    contact_name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    amount: str = Form(""),
    notes: Optional[str] = Form(None),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    bid_actions.create_bid(
        db, user, phase_id,
        company_name=company_name, contact_name=contact_name, email=email,
        phone=phone, amount=amount, notes=notes
    )
    return deps.toast_redirect(f"/phases/{phase_id}", "Bid recorded")

@router.post("/bids/{bid_id}/award")
async def award_bid(
    bid_id: int,
    awarded: bool = Form(False),
    db: Session = Depends(deps.get_db),
    user: User = Depends(deps.get_current_user)
):
    bid = bid_actions.award_bid(db, user, bid_id, awarded)
    return deps.toast_redirect(f"/phases/{bid.phase_id}", "Bid awarded" if awarded else "Award withdrawn")

@router.post("/bids/{bid_id}/delete")
async def delete_bid(bid_id: int, request: Request, db: Session = Depends(deps.get_db), user: User = Depends(deps.get_current_user)):
    bid_actions.delete_bid(db, user, bid_id)
    return deps.toast_redirect(deps.back_url(request), "Bid deleted")
