"""Repository implementations."""

from app.persistence.repositories.appointment_repository import AppointmentRepository
from app.persistence.repositories.base import BaseRepository
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.forwarding_repository import (
    ForwardingDeliveryRepository,
    ForwardingLogRepository,
)
from app.persistence.repositories.lead_repository import LeadRepository
from app.persistence.repositories.rule_repository import (
    ForwardingRuleRepository,
    RoutingRuleRepository,
)
from app.persistence.repositories.source_repository import WebhookSourceRepository
from app.persistence.repositories.workspace_repository import WorkspaceRepository

__all__ = [
    "AppointmentRepository",
    "BaseRepository",
    "ContactRepository",
    "ForwardingDeliveryRepository",
    "ForwardingLogRepository",
    "LeadRepository",
    "ForwardingRuleRepository",
    "RoutingRuleRepository",
    "WebhookSourceRepository",
    "WorkspaceRepository",
]
