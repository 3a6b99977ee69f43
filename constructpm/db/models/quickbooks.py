from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

SYNC_TYPES = ["invoices", "expenses", "vendors", "customers", "full"]

class QuickBooksConnection(Base):
    __tablename__ = "quickbooks_connections"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, unique=True)
    company_id = Column(String(50), nullable=False) # Intuit realmId
    company_name = Column(String(200))
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=False)
    token_expiry = Column(DateTime, nullable=False)
    sync_enabled = Column(Boolean, default=True)
    sync_invoices = Column(Boolean, default=True)
    sync_expenses = Column(Boolean, default=True)
    sync_vendors = Column(Boolean, default=True)
    sync_customers = Column(Boolean, default=True)
    last_sync_at = Column(DateTime, nullable=True)
    last_sync_status = Column(String(20), nullable=True)
    last_sync_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    organization = relationship("Organization")
    sync_logs = relationship("QuickBooksSyncLog", back_populates="connection", cascade="all, delete")

class QuickBooksSyncLog(Base):
    __tablename__ = "quickbooks_sync_logs"

    id = Column(Integer, primary_key=True, index=True)
    connection_id = Column(Integer, ForeignKey("quickbooks_connections.id"), nullable=False, index=True)
    sync_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False) # success, partial, error
    items_synced = Column(Integer, default=0)
    items_failed = Column(Integer, default=0)
    error_message = Column(Text, nullable=True)
    started_at = Column(DateTime, default=utcnow)
    completed_at = Column(DateTime, nullable=True)

    connection = relationship("QuickBooksConnection", back_populates="sync_logs")
