"""Inbound lead as handed from the webhook route to the ingestion service."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class LeadSubmission:
    """Validated fields of one inbound lead plus the untouched original body."""

    first_name: str
    last_name: str
    email: str
    source: str
    phone: str | None = None
    product_type: str | None = None
    zip_code: str | None = None
    state: str | None = None
    address: str | None = None
    city: str | None = None
    raw_payload: dict[str, Any] = field(default_factory=dict)
