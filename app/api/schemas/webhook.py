"""Inbound lead webhook schemas."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class LeadWebhookPayload(BaseModel):
    """Inbound lead body. camelCase and snake_case keys are both accepted."""

    model_config = ConfigDict(extra="allow", str_strip_whitespace=True)

    first_name: str = Field(min_length=1, validation_alias=AliasChoices("firstName", "first_name"))
    last_name: str = Field(min_length=1, validation_alias=AliasChoices("lastName", "last_name"))
    email: str = Field(min_length=3)
    source: str = Field(min_length=1)
    phone: str | None = None
    product_type: str | None = Field(
        default=None,
        validation_alias=AliasChoices("productType", "product_type", "productId", "product_id"),
    )
    zip_code: str | None = Field(
        default=None, validation_alias=AliasChoices("zipCode", "zip_code", "zip")
    )
    state: str | None = None
    address: str | None = None
    city: str | None = None

    @field_validator("email")
    @classmethod
    def email_has_at(cls, value: str) -> str:
        if "@" not in value:
            raise ValueError("email must contain '@'")
        return value.lower()


class LeadIngestResponse(BaseModel):
    """Result of a lead submission."""

    status: str = "success"
    contact_id: int
    lead_id: int
    contact_status: str  # 'new' or 'existing'
    workspace_id: int | None = None
    forwarding_queued: int = 0


class SourceHealthResponse(BaseModel):
    """Public health/config view of a webhook source."""

    status: str
    webhook_id: str
    name: str
    lead_type: str | None
    forwarding_enabled: bool
    total_leads: int
    last_lead_at: datetime | None
    timestamp: datetime
