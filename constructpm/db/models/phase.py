from sqlalchemy import Column, Integer, String, Text, Float, Boolean, DateTime, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

PHASE_STATUSES = ["PENDING", "IN_PROGRESS", "REVIEW_REQUESTED", "UNDER_REVIEW", "COMPLETE"]

class Phase(Base):
    __tablename__ = "phases"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    detail = Column(Text)
    is_milestone = Column(Boolean, default=False)
    sort_order = Column(Integer, default=0, nullable=False)
    status = Column(String(20), default="PENDING", nullable=False)
    progress = Column(Integer, default=0)
    est_start = Column(Date, nullable=False)
    est_end = Column(Date, nullable=False)
    worst_start = Column(Date, nullable=True)
    worst_end = Column(Date, nullable=True)
    actual_start = Column(DateTime, nullable=True)
    actual_end = Column(DateTime, nullable=True)
    budget = Column(Float, nullable=True)
    actual_cost = Column(Float, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    project = relationship("Project", back_populates="phases")
    assignments = relationship("PhaseAssignment", back_populates="phase", cascade="all, delete")
    documents = relationship("Document", back_populates="phase", cascade="all, delete")
    photos = relationship("Photo", back_populates="phase", cascade="all, delete")
    checklist = relationship("Checklist", back_populates="phase", uselist=False, cascade="all, delete")
    punch_items = relationship("PunchListItem", back_populates="phase", cascade="all, delete")
    lien_waivers = relationship("LienWaiver", back_populates="phase", cascade="all, delete")
    payment_applications = relationship("PaymentApplication", back_populates="phase", cascade="all, delete")
    bids = relationship("SubcontractorBid", back_populates="phase", cascade="all, delete")
    voice_notes = relationship("VoiceNote", back_populates="phase", cascade="all, delete")
    comments = relationship("PhaseComment", back_populates="phase", cascade="all, delete", order_by="PhaseComment.created_at.desc()")
    # Predecessors: phases that must finish before this one starts
    dependencies = relationship(
        "PhaseDependency", foreign_keys="PhaseDependency.phase_id", back_populates="phase", cascade="all, delete"
    )
    dependents = relationship(
        "PhaseDependency", foreign_keys="PhaseDependency.depends_on_id", back_populates="depends_on", cascade="all, delete"
    )

class PhaseAssignment(Base):
    __tablename__ = "phase_assignments"

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id"), nullable=False, index=True)
    staff_id = Column(Integer, ForeignKey("staff.id"), nullable=False, index=True)
    is_owner = Column(Boolean, default=False)

    phase = relationship("Phase", back_populates="assignments")
    staff = relationship("Staff", back_populates="assignments")

class PhaseDependency(Base):
    """Finish-to-start link: `phase` may start `lag_days` after `depends_on` ends."""
    __tablename__ = "phase_dependencies"
    __table_args__ = (UniqueConstraint("phase_id", "depends_on_id", name="uq_phase_dependency"),)

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id", ondelete="CASCADE"), nullable=False, index=True)
    depends_on_id = Column(Integer, ForeignKey("phases.id", ondelete="CASCADE"), nullable=False, index=True)
    lag_days = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    phase = relationship("Phase", foreign_keys=[phase_id], back_populates="dependencies")
    depends_on = relationship("Phase", foreign_keys=[depends_on_id], back_populates="dependents")

class PhaseComment(Base):
    __tablename__ = "phase_comments"

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)

    phase = relationship("Phase", back_populates="comments")
    user = relationship("User")
