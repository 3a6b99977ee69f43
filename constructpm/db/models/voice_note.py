from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

class VoiceNote(Base):
    __tablename__ = "voice_notes"

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    audio_path = Column(String(500), nullable=False)
    duration = Column(Integer, nullable=False) # seconds
    label = Column(String(200), nullable=True)
    transcript = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    phase = relationship("Phase", back_populates="voice_notes")
    created_by = relationship("User")
