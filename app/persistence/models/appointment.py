"""Appointment model."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text

from app.persistence.database import Base


class RoutingMethod:
    """Appointment.routing_method values."""

    DIRECT = "direct"
    AUTO = "auto"
    UNROUTED = "unrouted"


class AppointmentForwardStatus:
    """Appointment.forward_status values. NULL means never forwarded."""

    SUCCESS = "success"
    FAILED = "failed"


class Appointment(Base):
    """Booked appointment routed to a workspace."""

    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="SET NULL"), nullable=True, index=True)
    contact_id = Column(Integer, ForeignKey("contacts.id", ondelete="SET NULL"), nullable=True)
    source_webhook_id = Column(String(100), nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_phone = Column(String(20), nullable=True)
    customer_email = Column(String(255), nullable=True)
    service_type = Column(String(100), nullable=True)
    customer_zip = Column(String(10), nullable=True)
    customer_state = Column(String(2), nullable=True)
    appointment_date = Column(DateTime, nullable=True)
    appointment_notes = Column(Text, nullable=True)
    estimated_value = Column(Numeric(12, 2), nullable=True)

    matched_workspace_id = Column(Integer, ForeignKey("workspaces.id", ondelete="SET NULL"), nullable=True, index=True)
    routing_method = Column(String(20), nullable=False, default=RoutingMethod.UNROUTED)
    routing_rule_id = Column(Integer, nullable=True)

    # Outcome of the latest POST to the workspace's outbound webhook
    forward_status = Column(String(20), nullable=True)
    forward_attempts = Column(Integer, default=0, nullable=False)
    forward_response = Column(Text, nullable=True)
    forwarded_at = Column(DateTime, nullable=True)

    raw_payload = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, workspace={self.matched_workspace_id}, method={self.routing_method})>"
