"""Appointment schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class AppointmentReceive(BaseModel):
    """Appointment submission, either for an existing lead or with inline customer fields."""

    model_config = ConfigDict(extra="allow")

    appointment_date: datetime | None = None
    workspace_id: int | None = None
    lead_id: int | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    customer_email: str | None = None
    service_type: str | None = None
    customer_zip: str | None = None
    customer_state: str | None = None
    appointment_notes: str | None = None
    estimated_value: Decimal | None = None


class AppointmentResponse(BaseModel):
    """Stored appointment with its routing decision."""

    id: int
    lead_id: int | None
    contact_id: int | None
    customer_name: str | None
    customer_phone: str | None
    customer_email: str | None
    service_type: str | None
    customer_zip: str | None
    customer_state: str | None
    appointment_date: datetime | None
    estimated_value: Decimal | None
    matched_workspace_id: int | None
    routing_method: str
    routing_rule_id: int | None
    forward_status: str | None
    forward_attempts: int
    forward_response: str | None
    forwarded_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class AppointmentListResponse(BaseModel):
    """Paginated appointment listing."""

    total: int
    skip: int
    limit: int
    appointments: list[AppointmentResponse]


class AppointmentHistoryEntry(BaseModel):
    id: int
    customer_name: str | None
    service_type: str | None
    customer_zip: str | None
    matched_workspace_id: int | None
    workspace_name: str | None
    routing_method: str
    routing_status: str
    forward_status: str | None
    forward_attempts: int
    forward_response: str | None
    forwarded_at: datetime | None
    webhook_url_masked: str | None
    created_at: datetime


class AppointmentHistoryResponse(BaseModel):
    """Routing and forwarding history, newest first."""

    skip: int
    limit: int
    appointments: list[AppointmentHistoryEntry]


class AppointmentForwardRequest(BaseModel):
    """Manual reroute of an appointment to a workspace."""

    workspace_id: int
