from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey
from constructpm.core.dates import utcnow
from constructpm.db.base_class import Base

AI_PROVIDERS = ["openai", "anthropic"]

class AISettings(Base):
    __tablename__ = "ai_settings"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, unique=True)
    enabled = Column(Boolean, default=True)
    provider = Column(String(20), default="openai")
    model = Column(String(100), default="gpt-4o-mini")
    max_tokens = Column(Integer, default=1024)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

class AIUsageLog(Base):
    __tablename__ = "ai_usage_logs"

    id = Column(Integer, primary_key=True, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    feature = Column(String(50), nullable=False)
    provider = Column(String(20), nullable=False)
    model = Column(String(100), nullable=False)
    input_tokens = Column(Integer, default=0)
    output_tokens = Column(Integer, default=0)
    cost_usd = Column(Float, default=0.0)
    success = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
