"""Webhook source model (the dedup and rule scope)."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from app.persistence.database import Base


class WebhookSource(Base):
    """Inbound webhook endpoint a lead provider posts to.

    ``forwarding_enabled`` is the master toggle for every forwarding rule of
    this source; it is independent of the individual rule switches.
    """

    __tablename__ = "webhook_sources"

    id = Column(Integer, primary_key=True, index=True)
    webhook_id = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    lead_type = Column(String(50), nullable=True)  # 'solar', 'hvac', 'insurance', ...
    is_active = Column(Boolean, default=True, nullable=False)
    forwarding_enabled = Column(Boolean, default=True, nullable=False)

    # Statistics
    total_leads = Column(Integer, default=0, nullable=False)
    last_lead_at = Column(DateTime, nullable=True)
    auto_forward_count = Column(Integer, default=0, nullable=False)
    last_forwarded_at = Column(DateTime, nullable=True)

    deleted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<WebhookSource(id={self.id}, webhook_id={self.webhook_id}, forwarding_enabled={self.forwarding_enabled})>"
