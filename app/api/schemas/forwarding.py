"""Forwarding log and statistics schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class ForwardingLogEntryResponse(BaseModel):
    """One forwarding attempt."""

    id: int
    delivery_id: int | None
    lead_id: int | None
    contact_id: int | None
    rule_id: int | None
    source_webhook_id: str
    target_webhook_id: str
    target_webhook_url: str
    forwarded_at: datetime
    forward_status: str
    http_status_code: int | None
    response_body: str | None
    error_message: str | None
    retry_count: int
    matched_product: str | None
    matched_zip: str | None
    matched_state: str | None
    payload: dict[str, Any] | None

    class Config:
        from_attributes = True


class ForwardingLogResponse(BaseModel):
    """Paginated forwarding log."""

    webhook_id: str
    total: int
    skip: int
    limit: int
    entries: list[ForwardingLogEntryResponse]


class TopTarget(BaseModel):
    target_webhook_id: str
    count: int


class ForwardingStatsResponse(BaseModel):
    """Aggregate forwarding counts for a source."""

    webhook_id: str
    forwarding_enabled: bool
    total: int
    success: int
    failed: int
    retry: int
    skipped: int
    success_rate: float
    last_forward_at: datetime | None
    top_targets: list[TopTarget]
