from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from constructpm.db.base_class import Base

CONTACT_TYPES = ["TEAM", "SUBCONTRACTOR", "VENDOR", "INSPECTOR"]

class Staff(Base):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True) # Login linked to this contact
    name = Column(String(200), nullable=False)
    company = Column(String(200))
    role = Column(String(100))
    contact_type = Column(String(20), default="TEAM", nullable=False)
    email = Column(String(255))
    phone = Column(String(30))
    notes = Column(Text)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User")
    assignments = relationship("PhaseAssignment", back_populates="staff", cascade="all, delete")
