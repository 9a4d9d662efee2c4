"""Webhook source and workspace schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class SourceCreate(BaseModel):
    """Webhook source creation request."""

    webhook_id: str = Field(min_length=3, max_length=100, pattern=r"^[A-Za-z0-9_\-]+$")
    name: str = Field(min_length=1)
    description: str | None = None
    lead_type: str | None = None
    forwarding_enabled: bool = True


class SourceResponse(BaseModel):
    """Webhook source response."""

    id: int
    webhook_id: str
    name: str
    description: str | None
    lead_type: str | None
    is_active: bool
    forwarding_enabled: bool
    total_leads: int
    last_lead_at: datetime | None
    auto_forward_count: int
    last_forwarded_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class ForwardingToggleRequest(BaseModel):
    """Master toggle update."""

    forwarding_enabled: bool


class ForwardingToggleResponse(BaseModel):
    """Master toggle state after an update."""

    webhook_id: str
    forwarding_enabled: bool
    updated_at: datetime


class WorkspaceCreate(BaseModel):
    """Workspace creation request."""

    name: str = Field(min_length=1)
    outbound_webhook_url: str | None = None
    is_active: bool = True


class WorkspaceResponse(BaseModel):
    """Workspace response."""

    id: int
    name: str
    outbound_webhook_url: str | None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
