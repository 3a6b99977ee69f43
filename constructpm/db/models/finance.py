from sqlalchemy import Column, Integer, String, Text, Float, Boolean, DateTime, Date, ForeignKey
from sqlalchemy.orm import relationship
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

WAIVER_TYPES = ["CONDITIONAL_PARTIAL", "CONDITIONAL_FINAL", "UNCONDITIONAL_PARTIAL", "UNCONDITIONAL_FINAL"]
WAIVER_STATUSES = ["PENDING", "APPROVED", "REJECTED"]
PAYMENT_APP_STATUSES = ["DRAFT", "SUBMITTED", "APPROVED", "REJECTED", "PAID"]

class LienWaiver(Base):
    __tablename__ = "lien_waivers"

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id"), nullable=False, index=True)
    waiver_type = Column(String(30), nullable=False)
    vendor_name = Column(String(200), nullable=False)
    amount = Column(Float, nullable=False)
    through_date = Column(Date, nullable=True)
    description = Column(Text)
    status = Column(String(20), default="PENDING", nullable=False)
    notarized = Column(Boolean, default=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    phase = relationship("Phase", back_populates="lien_waivers")
    created_by = relationship("User")

class PaymentApplication(Base):
    __tablename__ = "payment_applications"

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id"), nullable=False, index=True)
    number = Column(Integer, nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    scheduled_value = Column(Float, default=0.0)
    work_completed = Column(Float, default=0.0)
    materials_stored = Column(Float, default=0.0)
    retainage = Column(Float, default=0.0)
    previous_payments = Column(Float, default=0.0)
    current_due = Column(Float, default=0.0)
    status = Column(String(20), default="DRAFT", nullable=False)
    notes = Column(Text)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    phase = relationship("Phase", back_populates="payment_applications")
    created_by = relationship("User")

class SubcontractorBid(Base):
    __tablename__ = "subcontractor_bids"

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id"), nullable=False, index=True)
    company_name = Column(String(200), nullable=False)
    contact_name = Column(String(200))
    email = Column(String(255))
    phone = Column(String(30))
    amount = Column(Float, nullable=False)
    notes = Column(Text)
    awarded = Column(Boolean, default=False)
    submitted_at = Column(DateTime, default=utcnow)

    phase = relationship("Phase", back_populates="bids")
