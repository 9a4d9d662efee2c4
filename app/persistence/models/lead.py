"""Lead model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from app.persistence.database import Base


class Lead(Base):
    """One inbound inquiry, linked to the contact it was resolved to."""

    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True, index=True)
    source_webhook_id = Column(String(100), nullable=False, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(20), nullable=True)
    product_type = Column(String(100), nullable=True, index=True)
    zip_code = Column(String(10), nullable=True, index=True)
    state = Column(String(2), nullable=True)
    source = Column(String(255), nullable=True)

    # Routing result (first matching routing rule)
    workspace_id = Column(Integer, ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True, index=True)
    routing_rule_id = Column(Integer, nullable=True)

    raw_payload = Column(JSON, nullable=True)
    status = Column(String(50), nullable=False, default="new", index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    contact = relationship("Contact", back_populates="leads")

    def __repr__(self) -> str:
        return f"<Lead(id={self.id}, source_webhook_id={self.source_webhook_id}, contact_id={self.contact_id}, status={self.status})>"
