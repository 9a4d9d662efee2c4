"""Lead forwarding models: logical deliveries and their per-attempt log."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, JSON, String, Text, UniqueConstraint

from app.persistence.database import Base


class DeliveryStatus:
    """ForwardingDelivery.status values."""

    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

    TERMINAL = (SUCCESS, FAILED, SKIPPED)


class ForwardStatus:
    """ForwardingLogEntry.forward_status values."""

    SUCCESS = "success"
    FAILED = "failed"
    RETRY = "retry"
    SKIPPED = "skipped"


class ForwardingDelivery(Base):
    """One lead delivered to one target, spanning every attempt.

    Rows are created in the same transaction as the lead, so a delivery that
    was matched is never lost even if the process dies before dispatch.
    """

    __tablename__ = "forwarding_deliveries"

    id = Column(Integer, primary_key=True, index=True)
    # Plain columns: a lead or contact deleted before dispatch fails the
    # delivery with a logged error instead of removing it
    lead_id = Column(Integer, nullable=False, index=True)
    contact_id = Column(Integer, nullable=True)
    rule_id = Column(Integer, nullable=False, index=True)
    source_webhook_id = Column(String(100), nullable=False, index=True)
    target_webhook_id = Column(String(100), nullable=False)
    target_webhook_url = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=DeliveryStatus.PENDING, index=True)
    attempt_count = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(DateTime, nullable=True)
    matched_product = Column(String(100), nullable=True)
    matched_zip = Column(String(10), nullable=True)
    matched_state = Column(String(2), nullable=True)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("lead_id", "target_webhook_url", name="uq_forwarding_deliveries_lead_target"),
    )

    def __repr__(self) -> str:
        return f"<ForwardingDelivery(id={self.id}, lead_id={self.lead_id}, target={self.target_webhook_id}, status={self.status})>"


class ForwardingLogEntry(Base):
    """Append-only record of a single forwarding attempt."""

    __tablename__ = "forwarding_log"

    id = Column(Integer, primary_key=True, index=True)
    delivery_id = Column(Integer, nullable=True, index=True)
    # Plain columns: entries outlive the lead, contact and rule they describe
    lead_id = Column(Integer, nullable=True, index=True)
    contact_id = Column(Integer, nullable=True)
    rule_id = Column(Integer, nullable=True)
    source_webhook_id = Column(String(100), nullable=False)
    target_webhook_id = Column(String(100), nullable=False)
    target_webhook_url = Column(Text, nullable=False)
    forwarded_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    forward_status = Column(String(20), nullable=False)
    http_status_code = Column(Integer, nullable=True)
    response_body = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    matched_product = Column(String(100), nullable=True)
    matched_zip = Column(String(10), nullable=True)
    matched_state = Column(String(2), nullable=True)
    payload = Column(JSON, nullable=True)

    __table_args__ = (
        Index("ix_forwarding_log_source_forwarded_at", "source_webhook_id", "forwarded_at"),
    )

    def __repr__(self) -> str:
        return f"<ForwardingLogEntry(id={self.id}, delivery_id={self.delivery_id}, status={self.forward_status}, retry_count={self.retry_count})>"
