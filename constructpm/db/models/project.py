from sqlalchemy import Column, Integer, String, Text, Float, DateTime, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

PROJECT_STATUSES = ["PLANNING", "ACTIVE", "ON_HOLD", "COMPLETED", "CANCELLED", "ARCHIVED"]
MEMBER_ROLES = ["OWNER", "MANAGER", "CONTRACTOR", "STAKEHOLDER", "VIEWER"]

class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False, index=True)
    description = Column(Text)
    address = Column(String(500))
    status = Column(String(20), default="PLANNING", nullable=False)
    budget = Column(Float, nullable=True)
    plan_approval = Column(Date, nullable=True)
    est_completion = Column(Date, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    organization = relationship("Organization", back_populates="projects")
    members = relationship("ProjectMember", back_populates="project", cascade="all, delete")
    phases = relationship("Phase", back_populates="project", cascade="all, delete", order_by="Phase.sort_order")
    activity_logs = relationship("ActivityLog", back_populates="project", cascade="all, delete")
    daily_logs = relationship("DailyLog", back_populates="project", cascade="all, delete", order_by="DailyLog.date.desc()")

class ProjectMember(Base):
    __tablename__ = "project_members"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_member"),)

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(20), default="VIEWER", nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    project = relationship("Project", back_populates="members")
    user = relationship("User", back_populates="memberships")
