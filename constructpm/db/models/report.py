from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

REPORT_FREQUENCIES = ["WEEKLY", "MONTHLY"]

class ReportSchedule(Base):
    __tablename__ = "report_schedules"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    frequency = Column(String(10), default="WEEKLY", nullable=False)
    day_of_week = Column(Integer, nullable=True) # 0 = Sunday
    day_of_month = Column(Integer, nullable=True)
    send_hour = Column(Integer, default=8) # UTC
    recipients = Column(JSON, default=list)
    include_projects = Column(JSON, default=list) # Empty means every project
    active = Column(Boolean, default=True)
    last_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    organization = relationship("Organization")
