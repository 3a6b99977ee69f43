from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

NOTIFICATION_TYPES = [
    "PHASE_STATUS_CHANGED",
    "CHECKLIST_COMPLETED",
    "DOCUMENT_UPLOADED",
    "DOCUMENT_STATUS_CHANGED",
    "PHOTO_UPLOADED",
    "REVIEW_REQUESTED",
    "REVIEW_COMPLETED",
    "TIMELINE_SHIFTED",
    "MEMBER_INVITED",
    "COMMENT_ADDED",
]

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(40), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)
    read = Column(Boolean, default=False, index=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    user = relationship("User")

class NotificationPreference(Base):
    __tablename__ = "notification_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    # Channels
    email_enabled = Column(Boolean, default=True)
    sms_enabled = Column(Boolean, default=False)
    in_app_enabled = Column(Boolean, default=True)

    # Per-event e-mail
    email_phase_status = Column(Boolean, default=True)
    email_review = Column(Boolean, default=True)
    email_checklist = Column(Boolean, default=True)
    email_documents = Column(Boolean, default=True)
    email_comments = Column(Boolean, default=False)

    # Per-event SMS
    sms_phase_status = Column(Boolean, default=True)
    sms_review = Column(Boolean, default=True)
    sms_checklist = Column(Boolean, default=False)
    sms_documents = Column(Boolean, default=False)

    quiet_start = Column(String(5), nullable=True) # "22:00"
    quiet_end = Column(String(5), nullable=True)

    user = relationship("User")
