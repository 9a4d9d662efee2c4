"""Domain services."""

from app.domain.services.appointment_service import AppointmentService
from app.domain.services.contact_resolver import ContactResolver
from app.domain.services.forwarding_dispatcher import ForwardingDispatcher
from app.domain.services.lead_ingestion_service import LeadIngestionService
from app.domain.services.rule_service import RuleService
from app.domain.services.source_service import SourceService

__all__ = [
    "AppointmentService",
    "ContactResolver",
    "ForwardingDispatcher",
    "LeadIngestionService",
    "RuleService",
    "SourceService",
]
