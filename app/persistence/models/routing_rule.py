"""Routing and forwarding rule models."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, JSON, String, Text

from app.persistence.database import Base


class RoutingRule(Base):
    """First-match-wins rule assigning a lead or appointment to a workspace.

    A NULL ``source_webhook_id`` makes the rule apply to every source.
    """

    __tablename__ = "routing_rules"

    id = Column(Integer, primary_key=True, index=True)
    workspace_id = Column(Integer, ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False, index=True)
    source_webhook_id = Column(String(100), nullable=True, index=True)
    product_types = Column(JSON, nullable=False, default=list)
    zip_codes = Column(JSON, nullable=False, default=list)
    states = Column(JSON, nullable=False, default=list)
    priority = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_routing_rules_source_priority", "source_webhook_id", "priority", "id"),
    )

    def __repr__(self) -> str:
        return f"<RoutingRule(id={self.id}, workspace_id={self.workspace_id}, priority={self.priority})>"


class ForwardingRule(Base):
    """All-matches-fire rule sending a source's leads to an external webhook."""

    __tablename__ = "forwarding_rules"

    id = Column(Integer, primary_key=True, index=True)
    source_webhook_id = Column(String(100), nullable=False, index=True)
    target_webhook_id = Column(String(100), nullable=False)
    target_webhook_url = Column(Text, nullable=False)
    product_types = Column(JSON, nullable=False, default=list)
    zip_codes = Column(JSON, nullable=False, default=list)
    states = Column(JSON, nullable=False, default=list)
    priority = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    forward_enabled = Column(Boolean, default=True, nullable=False)
    forward_count = Column(Integer, default=0, nullable=False)
    last_forwarded_at = Column(DateTime, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_forwarding_rules_source_priority", "source_webhook_id", "priority", "id"),
    )

    def __repr__(self) -> str:
        return f"<ForwardingRule(id={self.id}, source={self.source_webhook_id}, target={self.target_webhook_id}, priority={self.priority})>"
