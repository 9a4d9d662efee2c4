"""API schemas package."""

from app.api.schemas.appointment import (
    AppointmentForwardRequest,
    AppointmentHistoryEntry,
    AppointmentHistoryResponse,
    AppointmentListResponse,
    AppointmentReceive,
    AppointmentResponse,
)
from app.api.schemas.forwarding import (
    ForwardingLogEntryResponse,
    ForwardingLogResponse,
    ForwardingStatsResponse,
)
from app.api.schemas.rules import (
    ForwardingRuleBulkCreate,
    ForwardingRuleCreate,
    ForwardingRuleResponse,
    ForwardingRulesListResponse,
    ForwardingRuleUpdate,
    RoutingRuleBulkCreate,
    RoutingRuleCreate,
    RoutingRuleResponse,
    RoutingRuleUpdate,
)
from app.api.schemas.source import (
    ForwardingToggleRequest,
    ForwardingToggleResponse,
    SourceCreate,
    SourceResponse,
    WorkspaceCreate,
    WorkspaceResponse,
)
from app.api.schemas.webhook import LeadIngestResponse, LeadWebhookPayload, SourceHealthResponse

__all__ = [
    "AppointmentForwardRequest",
    "AppointmentHistoryEntry",
    "AppointmentHistoryResponse",
    "AppointmentListResponse",
    "AppointmentReceive",
    "AppointmentResponse",
    "ForwardingLogEntryResponse",
    "ForwardingLogResponse",
    "ForwardingStatsResponse",
    "ForwardingRuleBulkCreate",
    "ForwardingRuleCreate",
    "ForwardingRuleResponse",
    "ForwardingRulesListResponse",
    "ForwardingRuleUpdate",
    "RoutingRuleBulkCreate",
    "RoutingRuleCreate",
    "RoutingRuleResponse",
    "RoutingRuleUpdate",
    "ForwardingToggleRequest",
    "ForwardingToggleResponse",
    "SourceCreate",
    "SourceResponse",
    "WorkspaceCreate",
    "WorkspaceResponse",
    "LeadIngestResponse",
    "LeadWebhookPayload",
    "SourceHealthResponse",
]
