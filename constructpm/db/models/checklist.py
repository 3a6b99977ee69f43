from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from constructpm.db.base_class import Base

class ChecklistTemplate(Base):
    __tablename__ = "checklist_templates"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    items = relationship("ChecklistTemplateItem", back_populates="template",
                         cascade="all, delete", order_by="ChecklistTemplateItem.order")

class ChecklistTemplateItem(Base):
    __tablename__ = "checklist_template_items"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("checklist_templates.id"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    order = Column(Integer, default=0)

    template = relationship("ChecklistTemplate", back_populates="items")

class Checklist(Base):
    __tablename__ = "checklists"

    id = Column(Integer, primary_key=True, index=True)
    phase_id = Column(Integer, ForeignKey("phases.id"), nullable=False, unique=True)
    template_id = Column(Integer, ForeignKey("checklist_templates.id"), nullable=True)
    name = Column(String(200))
    created_at = Column(DateTime, server_default=func.now())

    phase = relationship("Phase", back_populates="checklist")
    items = relationship("ChecklistItem", back_populates="checklist",
                         cascade="all, delete", order_by="ChecklistItem.order")

class ChecklistItem(Base):
    __tablename__ = "checklist_items"

    id = Column(Integer, primary_key=True, index=True)
    checklist_id = Column(Integer, ForeignKey("checklists.id"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    order = Column(Integer, default=0)
    completed = Column(Boolean, default=False)
    completed_at = Column(DateTime, nullable=True)
    completed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)

    checklist = relationship("Checklist", back_populates="items")
    completed_by = relationship("User")
