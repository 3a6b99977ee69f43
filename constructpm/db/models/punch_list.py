from sqlalchemy import Column, Integer, String, Text, DateTime, Date, ForeignKey
from sqlalchemy.orm import relationship
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

PUNCH_PRIORITIES = ["CRITICAL", "HIGH", "MEDIUM", "LOW"]
PUNCH_STATUSES = ["OPEN", "IN_PROGRESS", "READY_FOR_REVIEW", "CLOSED"]

class PunchListItem(Base):
    __tablename__ = "punch_list_items"

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id"), nullable=False, index=True)
    item_number = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    priority = Column(String(20), default="MEDIUM", nullable=False)
    status = Column(String(20), default="OPEN", nullable=False)
    location = Column(String(200))
    assigned_to_id = Column(Integer, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    due_date = Column(Date, nullable=True)
    closed_at = Column(DateTime, nullable=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    phase = relationship("Phase", back_populates="punch_items")
    assigned_to = relationship("Staff")
    created_by = relationship("User")
