"""Routing and forwarding rule schemas.

Criteria are lists of strings where ``*`` is the wildcard. Semantic checks
(zip format, URL scheme, positive priority) happen in the rule service and
surface as 400 errors.
"""

from datetime import datetime

from pydantic import BaseModel


class ForwardingRuleCreate(BaseModel):
    """Forwarding rule creation request."""

    target_webhook_id: str
    target_webhook_url: str
    product_types: list[str]
    zip_codes: list[str]
    states: list[str] | None = None
    priority: int | None = None
    is_active: bool = True
    forward_enabled: bool = True
    notes: str | None = None


class ForwardingRuleBulkCreate(BaseModel):
    """Forwarding rule creation with a comma-separated zip list."""

    target_webhook_id: str
    target_webhook_url: str
    product_types: list[str]
    zip_codes_csv: str
    states: list[str] | None = None
    priority: int | None = None
    forward_enabled: bool = True
    notes: str | None = None


class ForwardingRuleUpdate(BaseModel):
    """Partial forwarding rule update; omitted fields are left unchanged."""

    target_webhook_id: str | None = None
    target_webhook_url: str | None = None
    product_types: list[str] | None = None
    zip_codes: list[str] | None = None
    states: list[str] | None = None
    priority: int | None = None
    is_active: bool | None = None
    forward_enabled: bool | None = None
    notes: str | None = None


class ForwardingRuleResponse(BaseModel):
    """Forwarding rule response."""

    id: int
    source_webhook_id: str
    target_webhook_id: str
    target_webhook_url: str
    product_types: list[str]
    zip_codes: list[str]
    states: list[str]
    priority: int
    is_active: bool
    forward_enabled: bool
    forward_count: int
    last_forwarded_at: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ForwardingRulesListResponse(BaseModel):
    """Forwarding rules of one source in evaluation order."""

    webhook_id: str
    total_rules: int
    active_rules: int
    rules: list[ForwardingRuleResponse]


class RoutingRuleCreate(BaseModel):
    """Routing rule creation request. Without a source the rule is global."""

    workspace_id: int
    product_types: list[str]
    zip_codes: list[str]
    states: list[str] | None = None
    priority: int | None = None
    source_webhook_id: str | None = None
    is_active: bool = True
    notes: str | None = None


class RoutingRuleBulkCreate(BaseModel):
    """Routing rule creation with a comma-separated zip list."""

    workspace_id: int
    product_types: list[str]
    zip_codes_csv: str
    states: list[str] | None = None
    priority: int | None = None
    source_webhook_id: str | None = None
    notes: str | None = None


class RoutingRuleUpdate(BaseModel):
    """Partial routing rule update; omitted fields are left unchanged."""

    workspace_id: int | None = None
    product_types: list[str] | None = None
    zip_codes: list[str] | None = None
    states: list[str] | None = None
    priority: int | None = None
    is_active: bool | None = None
    notes: str | None = None


class RoutingRuleResponse(BaseModel):
    """Routing rule response."""

    id: int
    workspace_id: int
    source_webhook_id: str | None
    product_types: list[str]
    zip_codes: list[str]
    states: list[str]
    priority: int
    is_active: bool
    notes: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
