from sqlalchemy import Column, Integer, String, Text, DateTime, Date, ForeignKey
from sqlalchemy.orm import relationship
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

class DailyLog(Base):
    """One site report per day: weather, crew on site and the work done."""
    __tablename__ = "daily_logs"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    weather = Column(String(100))
    temp_high = Column(Integer, nullable=True)
    temp_low = Column(Integer, nullable=True)
    crew_count = Column(Integer, nullable=True)
    equipment = Column(Text)
    work_summary = Column(Text, nullable=False)
    issues = Column(Text)
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    project = relationship("Project", back_populates="daily_logs")
    author = relationship("User")
