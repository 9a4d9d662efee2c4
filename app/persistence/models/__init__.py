"""Database models."""

from app.persistence.models.appointment import Appointment, AppointmentForwardStatus, RoutingMethod
from app.persistence.models.contact import Contact
from app.persistence.models.forwarding import (
    DeliveryStatus,
    ForwardingDelivery,
    ForwardingLogEntry,
    ForwardStatus,
)
from app.persistence.models.lead import Lead
from app.persistence.models.routing_rule import ForwardingRule, RoutingRule
from app.persistence.models.webhook_source import WebhookSource
from app.persistence.models.workspace import Workspace

__all__ = [
    "Appointment",
    "AppointmentForwardStatus",
    "RoutingMethod",
    "Contact",
    "DeliveryStatus",
    "ForwardingDelivery",
    "ForwardingLogEntry",
    "ForwardStatus",
    "Lead",
    "ForwardingRule",
    "RoutingRule",
    "WebhookSource",
    "Workspace",
]
