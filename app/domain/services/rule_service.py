"""Rule store: validated CRUD for routing and forwarding rules."""

import logging
from typing import Any
from urllib.parse import urlparse

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    RuleConfigurationError,
    RuleNotFoundError,
    SourceNotFoundError,
    WorkspaceNotFoundError,
)
from app.domain.models.criteria import STATE_PATTERN, WILDCARD, ZIP_PATTERN, split_csv
from app.domain.models.rules import RuleSnapshot
from app.domain.services.rule_cache import FORWARDING, ROUTING, RuleCache, rule_cache
from app.persistence.models.routing_rule import ForwardingRule, RoutingRule
from app.persistence.repositories.rule_repository import (
    ForwardingRuleRepository,
    RoutingRuleRepository,
)
from app.persistence.repositories.source_repository import WebhookSourceRepository
from app.persistence.repositories.workspace_repository import WorkspaceRepository

logger = logging.getLogger(__name__)


def _clean_products(values: list[str] | None) -> list[str]:
    cleaned = [v.strip() for v in values or [] if v and v.strip()]
    if not cleaned:
        raise RuleConfigurationError("product_types must contain at least one entry (use '*' for any)")
    return cleaned


def _clean_zips(values: list[str] | None) -> list[str]:
    cleaned = [v.strip() for v in values or [] if v and v.strip()]
    if not cleaned:
        raise RuleConfigurationError("zip_codes must contain at least one entry (use '*' for any)")
    invalid = [v for v in cleaned if v != WILDCARD and not ZIP_PATTERN.match(v)]
    if invalid:
        raise RuleConfigurationError(f"Invalid zip codes: {', '.join(invalid)}")
    return cleaned


def _clean_states(values: list[str] | None) -> list[str]:
    if values is None:
        return [WILDCARD]
    cleaned = [v.strip().upper() for v in values if v and v.strip()]
    if not cleaned:
        raise RuleConfigurationError("states must contain at least one entry (use '*' for any)")
    invalid = [v for v in cleaned if v != WILDCARD and not STATE_PATTERN.match(v)]
    if invalid:
        raise RuleConfigurationError(f"Invalid states: {', '.join(invalid)}")
    return cleaned


def _check_priority(priority: int) -> int:
    if isinstance(priority, bool) or not isinstance(priority, int) or priority < 1:
        raise RuleConfigurationError("priority must be a positive integer")
    return priority


def _check_target_url(url: str | None) -> str:
    parsed = urlparse((url or "").strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise RuleConfigurationError(f"target_webhook_url must be an absolute http(s) URL: {url!r}")
    return url.strip()


class RuleService:
    """Creates, updates and deletes rules and keeps the snapshot cache honest.

    Every mutation commits and then invalidates the affected scope, so the
    next match sees the new rule set.
    """

    def __init__(self, session: AsyncSession, cache: RuleCache | None = None) -> None:
        self.session = session
        self.cache = cache or rule_cache
        self.routing_repo = RoutingRuleRepository(session)
        self.forwarding_repo = ForwardingRuleRepository(session)
        self.source_repo = WebhookSourceRepository(session)
        self.workspace_repo = WorkspaceRepository(session)

    # Snapshots

    async def get_routing_snapshot(self, scope: str | None) -> tuple[RuleSnapshot, ...]:
        """Active routing rules for a scope, global rules included.

        Without a scope only the global rules apply.
        """
        async def load() -> list[RuleSnapshot]:
            rules = await self.routing_repo.list_ordered(scope, active_only=True)
            if scope is None:
                rules = [rule for rule in rules if rule.source_webhook_id is None]
            return [RuleSnapshot.from_routing_rule(rule) for rule in rules]

        return await self.cache.get(ROUTING, scope, load)

    async def get_forwarding_snapshot(self, scope: str) -> tuple[RuleSnapshot, ...]:
        """Active, forward-enabled forwarding rules of a scope."""
        async def load() -> list[RuleSnapshot]:
            rules = await self.forwarding_repo.list_ordered(scope, active_only=True)
            return [RuleSnapshot.from_forwarding_rule(rule) for rule in rules]

        return await self.cache.get(FORWARDING, scope, load)

    # Forwarding rules

    async def _require_source(self, webhook_id: str) -> None:
        if await self.source_repo.get_by_webhook_id(webhook_id, active_only=True) is None:
            raise SourceNotFoundError(webhook_id)

    async def create_forwarding_rule(
        self,
        webhook_id: str,
        target_webhook_id: str,
        target_webhook_url: str,
        product_types: list[str],
        zip_codes: list[str],
        states: list[str] | None = None,
        priority: int | None = None,
        is_active: bool = True,
        forward_enabled: bool = True,
        notes: str | None = None,
    ) -> ForwardingRule:
        """Create a forwarding rule for a source.

        Raises:
            SourceNotFoundError: If the source is unknown or inactive
            RuleConfigurationError: If the rule definition is invalid
        """
        await self._require_source(webhook_id)
        if not target_webhook_id or not target_webhook_id.strip():
            raise RuleConfigurationError("target_webhook_id is required")

        data = {
            "target_webhook_id": target_webhook_id.strip(),
            "target_webhook_url": _check_target_url(target_webhook_url),
            "product_types": _clean_products(product_types),
            "zip_codes": _clean_zips(zip_codes),
            "states": _clean_states(states),
            "is_active": is_active,
            "forward_enabled": forward_enabled,
            "notes": notes,
        }
        if priority is None:
            priority = await self.forwarding_repo.max_priority(webhook_id) + 1
        data["priority"] = _check_priority(priority)

        rule = await self.forwarding_repo.create(webhook_id, **data)
        await self.cache.invalidate(FORWARDING, webhook_id)
        logger.info(
            "Forwarding rule created",
            extra={"rule_id": rule.id, "target_webhook_id": rule.target_webhook_id, "priority": rule.priority},
        )
        return rule

    async def bulk_create_forwarding_rule(
        self,
        webhook_id: str,
        zip_codes_csv: str,
        **fields: Any,
    ) -> ForwardingRule:
        """Create one forwarding rule whose zip list comes from a comma-separated string."""
        zip_codes = split_csv(zip_codes_csv or "")
        if not zip_codes:
            raise RuleConfigurationError("No valid zip codes provided")
        return await self.create_forwarding_rule(webhook_id, zip_codes=zip_codes, **fields)

    async def list_forwarding_rules(self, webhook_id: str) -> list[ForwardingRule]:
        return await self.forwarding_repo.list_ordered(webhook_id)

    async def get_forwarding_rule(self, webhook_id: str, rule_id: int) -> ForwardingRule:
        rule = await self.forwarding_repo.get_by_id(webhook_id, rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    async def update_forwarding_rule(self, webhook_id: str, rule_id: int, **changes: Any) -> ForwardingRule:
        """Apply a partial update; only keys present in ``changes`` are touched.

        Raises:
            RuleNotFoundError: If the rule does not exist in this scope
            RuleConfigurationError: If a changed field is invalid
        """
        rule = await self.get_forwarding_rule(webhook_id, rule_id)
        data = self._validated_changes(changes)
        if "target_webhook_url" in changes:
            data["target_webhook_url"] = _check_target_url(changes["target_webhook_url"])
        if "target_webhook_id" in changes:
            if not changes["target_webhook_id"] or not changes["target_webhook_id"].strip():
                raise RuleConfigurationError("target_webhook_id is required")
            data["target_webhook_id"] = changes["target_webhook_id"].strip()
        if changes.get("forward_enabled") is not None:
            data["forward_enabled"] = bool(changes["forward_enabled"])

        for key, value in data.items():
            setattr(rule, key, value)
        await self.session.commit()
        await self.session.refresh(rule)
        await self.cache.invalidate(FORWARDING, webhook_id)
        return rule

    async def delete_forwarding_rule(self, webhook_id: str, rule_id: int) -> None:
        if not await self.forwarding_repo.delete(webhook_id, rule_id):
            raise RuleNotFoundError(rule_id)
        await self.cache.invalidate(FORWARDING, webhook_id)
        logger.info("Forwarding rule deleted", extra={"rule_id": rule_id})

    # Routing rules

    async def create_routing_rule(
        self,
        workspace_id: int,
        product_types: list[str],
        zip_codes: list[str],
        states: list[str] | None = None,
        priority: int | None = None,
        source_webhook_id: str | None = None,
        is_active: bool = True,
        notes: str | None = None,
    ) -> RoutingRule:
        """Create a routing rule; without a source it applies to every source.

        Raises:
            WorkspaceNotFoundError: If the workspace is unknown or inactive
            SourceNotFoundError: If a source is given but unknown or inactive
            RuleConfigurationError: If the rule definition is invalid
        """
        if await self.workspace_repo.get_active(workspace_id) is None:
            raise WorkspaceNotFoundError(workspace_id)
        if source_webhook_id is not None:
            await self._require_source(source_webhook_id)

        data = {
            "workspace_id": workspace_id,
            "source_webhook_id": source_webhook_id,
            "product_types": _clean_products(product_types),
            "zip_codes": _clean_zips(zip_codes),
            "states": _clean_states(states),
            "is_active": is_active,
            "notes": notes,
        }
        if priority is None:
            priority = await self.routing_repo.max_priority(source_webhook_id) + 1
        data["priority"] = _check_priority(priority)

        rule = await self.routing_repo.create(None, **data)
        await self.cache.invalidate(ROUTING, source_webhook_id)
        logger.info(
            "Routing rule created",
            extra={"rule_id": rule.id, "workspace_id": workspace_id, "priority": rule.priority},
        )
        return rule

    async def bulk_create_routing_rule(self, zip_codes_csv: str, **fields: Any) -> RoutingRule:
        zip_codes = split_csv(zip_codes_csv or "")
        if not zip_codes:
            raise RuleConfigurationError("No valid zip codes provided")
        return await self.create_routing_rule(zip_codes=zip_codes, **fields)

    async def list_routing_rules(
        self, source_webhook_id: str | None = None, workspace_id: int | None = None
    ) -> list[RoutingRule]:
        rules = await self.routing_repo.list_ordered(source_webhook_id)
        if workspace_id is not None:
            rules = [rule for rule in rules if rule.workspace_id == workspace_id]
        return rules

    async def get_routing_rule(self, rule_id: int) -> RoutingRule:
        rule = await self.routing_repo.get_by_id(None, rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule

    async def update_routing_rule(self, rule_id: int, **changes: Any) -> RoutingRule:
        rule = await self.get_routing_rule(rule_id)
        old_scope = rule.source_webhook_id
        data = self._validated_changes(changes)
        if changes.get("workspace_id") is not None:
            if await self.workspace_repo.get_active(changes["workspace_id"]) is None:
                raise WorkspaceNotFoundError(changes["workspace_id"])
            data["workspace_id"] = changes["workspace_id"]

        for key, value in data.items():
            setattr(rule, key, value)
        await self.session.commit()
        await self.session.refresh(rule)
        await self.cache.invalidate(ROUTING, old_scope)
        return rule

    async def delete_routing_rule(self, rule_id: int) -> None:
        rule = await self.get_routing_rule(rule_id)
        scope = rule.source_webhook_id
        await self.session.delete(rule)
        await self.session.commit()
        await self.cache.invalidate(ROUTING, scope)
        logger.info("Routing rule deleted", extra={"rule_id": rule_id})

    @staticmethod
    def _validated_changes(changes: dict[str, Any]) -> dict[str, Any]:
        """Validate the criteria and bookkeeping fields shared by both rule kinds."""
        data: dict[str, Any] = {}
        if "product_types" in changes:
            data["product_types"] = _clean_products(changes["product_types"])
        if "zip_codes" in changes:
            data["zip_codes"] = _clean_zips(changes["zip_codes"])
        if "states" in changes:
            if changes["states"] is None:
                raise RuleConfigurationError("states must contain at least one entry (use '*' for any)")
            data["states"] = _clean_states(changes["states"])
        if "priority" in changes:
            data["priority"] = _check_priority(changes["priority"])
        if changes.get("is_active") is not None:
            data["is_active"] = bool(changes["is_active"])
        if "notes" in changes:
            data["notes"] = changes["notes"]
        return data
