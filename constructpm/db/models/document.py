from sqlalchemy import Column, Integer, String, Text, Float, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

DOCUMENT_CATEGORIES = ["PERMIT", "CONTRACT", "INVOICE", "BLUEPRINT", "INSPECTION", "OTHER"]
DOCUMENT_STATUSES = ["PENDING", "APPROVED", "REJECTED", "EXPIRED"]
ANNOTATION_TYPES = ["arrow", "circle", "rectangle", "text"]

class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id"), nullable=False, index=True)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    size = Column(Integer, default=0)
    mime_type = Column(String(100))
    category = Column(String(20), default="OTHER", nullable=False)
    status = Column(String(20), default="PENDING", nullable=False)
    version = Column(Integer, default=1)
    notes = Column(Text)
    created_at = Column(DateTime, default=utcnow)

    phase = relationship("Phase", back_populates="documents")
    uploaded_by = relationship("User")

class Photo(Base):
    __tablename__ = "photos"

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id"), nullable=False, index=True)
    uploaded_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    file_path = Column(String(500), nullable=False)
    caption = Column(String(500))
    created_at = Column(DateTime, default=utcnow)

    phase = relationship("Phase", back_populates="photos")
    uploaded_by = relationship("User")
    annotations = relationship("PhotoAnnotation", back_populates="photo", cascade="all, delete")

class PhotoAnnotation(Base):
    __tablename__ = "photo_annotations"

    id = Column(Integer, primary_key=True, index=True)
    photo_id = Column(Integer, ForeignKey("photos.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    type = Column(String(20), nullable=False)
    # Coordinates are normalised to 0-1 of the image size
    x = Column(Float, nullable=False)
    y = Column(Float, nullable=False)
    width = Column(Float, nullable=True)
    height = Column(Float, nullable=True)
    radius = Column(Float, nullable=True)
    color = Column(String(20), default="#FF0000")
    label = Column(String(200), nullable=True)
    created_at = Column(DateTime, default=utcnow)

    photo = relationship("Photo", back_populates="annotations")
    created_by = relationship("User")
