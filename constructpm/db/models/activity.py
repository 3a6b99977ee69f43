from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(50), nullable=False, index=True) # e.g. PHASE_STATUS_CHANGED
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True) # Values needed to undo the action
    created_at = Column(DateTime, default=utcnow, index=True)

    project = relationship("Project", back_populates="activity_logs")
    user = relationship("User")
