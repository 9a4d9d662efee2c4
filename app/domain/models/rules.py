"""Immutable rule snapshots evaluated by the rule matcher."""

from dataclasses import dataclass
from typing import Any

from app.domain.models.criteria import (
    Criterion,
    normalize_product,
    normalize_state,
    normalize_zip,
    parse_criterion,
)


@dataclass(frozen=True)
class RuleSnapshot:
    """Read-only view of a routing or forwarding rule.

    Routing rules carry ``workspace_id``; forwarding rules carry the target
    webhook fields. ``forward_enabled`` is always True for routing rules.
    """

    id: int
    priority: int
    products: Criterion
    zips: Criterion
    states: Criterion
    is_active: bool = True
    forward_enabled: bool = True
    source_webhook_id: str | None = None
    workspace_id: int | None = None
    target_webhook_id: str | None = None
    target_webhook_url: str | None = None

    @property
    def order_key(self) -> tuple[int, int]:
        return (self.priority, self.id)

    @classmethod
    def from_routing_rule(cls, rule: Any) -> "RuleSnapshot":
        return cls(
            id=rule.id,
            priority=rule.priority,
            products=parse_criterion(rule.product_types, normalize_product),
            zips=parse_criterion(rule.zip_codes, normalize_zip),
            states=parse_criterion(rule.states, normalize_state),
            is_active=rule.is_active,
            source_webhook_id=rule.source_webhook_id,
            workspace_id=rule.workspace_id,
        )

    @classmethod
    def from_forwarding_rule(cls, rule: Any) -> "RuleSnapshot":
        return cls(
            id=rule.id,
            priority=rule.priority,
            products=parse_criterion(rule.product_types, normalize_product),
            zips=parse_criterion(rule.zip_codes, normalize_zip),
            states=parse_criterion(rule.states, normalize_state),
            is_active=rule.is_active,
            forward_enabled=rule.forward_enabled,
            source_webhook_id=rule.source_webhook_id,
            target_webhook_id=rule.target_webhook_id,
            target_webhook_url=rule.target_webhook_url,
        )


@dataclass(frozen=True)
class LeadCriteria:
    """The lead attributes rules are matched on, already normalized."""

    product_type: str | None
    zip_code: str | None
    state: str | None

    @classmethod
    def from_values(
        cls,
        product_type: str | None,
        zip_code: str | None,
        state: str | None,
    ) -> "LeadCriteria":
        return cls(
            product_type=normalize_product(product_type),
            zip_code=normalize_zip(zip_code),
            state=normalize_state(state),
        )


@dataclass(frozen=True)
class RuleMatch:
    """A rule that matched, with the values that satisfied each dimension.

    A dimension satisfied by a wildcard is reported as ``*``.
    """

    rule: RuleSnapshot
    product: str | None
    zip: str | None
    state: str | None
