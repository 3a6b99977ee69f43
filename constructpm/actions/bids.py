from typing import List

from sqlalchemy.orm import Session

from constructpm.actions.common import forbidden, get_membership, get_phase, not_found, require_user, validate
from constructpm.core.permissions import ADMIN
from constructpm.db.models.finance import SubcontractorBid
from constructpm.db.models.phase import Phase
from constructpm.db.models.user import User
from constructpm.schemas import BidCreate
from constructpm.utils.activity import log_activity

# Project roles that may award or delete bids
BID_MANAGER_ROLES = ("OWNER", "MANAGER")


def _require_member(db: Session, user: User, phase: Phase):
    if get_membership(db, phase.project_id, user.id) is None and user.role != ADMIN:
        raise forbidden("Not a project member")


def _require_bid_manager(db: Session, user: User, phase: Phase):
    if user.role == ADMIN:
        return
    member = get_membership(db, phase.project_id, user.id)
    if member is None or member.role not in BID_MANAGER_ROLES:
        raise forbidden("Insufficient permissions")


def list_bids(db: Session, user: User, phase_id: int) -> List[SubcontractorBid]:
    phase = get_phase(db, user, phase_id)
    return db.query(SubcontractorBid).filter(SubcontractorBid.phase_id == phase.id)\
        .order_by(SubcontractorBid.submitted_at.desc(), SubcontractorBid.id.desc()).all()


def _get_bid(db: Session, user: User, bid_id: int) -> SubcontractorBid:
    require_user(user)
    bid = db.query(SubcontractorBid).filter(SubcontractorBid.id == bid_id).first()
    if not bid:
        raise not_found("Bid")
    get_phase(db, user, bid.phase_id)
    return bid


def create_bid(db: Session, user: User, phase_id: int, **data) -> SubcontractorBid:
    phase = get_phase(db, user, phase_id)
    _require_member(db, user, phase)
    payload = validate(BidCreate, **data)

    bid = SubcontractorBid(phase_id=phase.id, **payload.model_dump())
    db.add(bid)
    db.commit()
    db.refresh(bid)
    return bid


def award_bid(db: Session, user: User, bid_id: int, awarded: bool) -> SubcontractorBid:
    bid = _get_bid(db, user, bid_id)
    _require_bid_manager(db, user, bid.phase)
    bid.awarded = awarded
    db.commit()

    if awarded:
        log_activity(
            db, user, "BID_AWARDED", f"Awarded {bid.phase.name} bid to {bid.company_name}",
            project_id=bid.phase.project_id, data={"bidId": bid.id, "amount": bid.amount},
        )
    return bid


def delete_bid(db: Session, user: User, bid_id: int) -> None:
    bid = _get_bid(db, user, bid_id)
    _require_bid_manager(db, user, bid.phase)
    db.delete(bid)
    db.commit()
