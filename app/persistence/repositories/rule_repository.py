"""Routing and forwarding rule repositories."""

from datetime import datetime

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.routing_rule import ForwardingRule, RoutingRule
from app.persistence.repositories.base import BaseRepository


class RoutingRuleRepository(BaseRepository[RoutingRule]):
    """Repository for RoutingRule entities.

    A rule with no source applies to every source, so scoped reads include
    global rules.
    """

    def __init__(self, session: AsyncSession):
        """Initialize routing rule repository."""
        super().__init__(RoutingRule, session)

    def _scoped(self, stmt, scope: str | None):
        if scope is not None:
            stmt = stmt.where(
                or_(RoutingRule.source_webhook_id == scope, RoutingRule.source_webhook_id.is_(None))
            )
        return stmt

    async def list_ordered(self, scope: str | None, active_only: bool = False) -> list[RoutingRule]:
        """List rules applicable to a scope in evaluation order (priority, id).

        Args:
            scope: Webhook source ID, or None for every rule
            active_only: Only return active rules

        Returns:
            List of routing rules
        """
        stmt = self._scoped(select(RoutingRule), scope)
        if active_only:
            stmt = stmt.where(RoutingRule.is_active.is_(True))
        stmt = stmt.order_by(RoutingRule.priority, RoutingRule.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def max_priority(self, scope: str | None) -> int:
        """Highest priority value among the rules of exactly this scope, 0 if none."""
        if scope is None:
            condition = RoutingRule.source_webhook_id.is_(None)
        else:
            condition = RoutingRule.source_webhook_id == scope
        result = await self.session.execute(
            select(func.max(RoutingRule.priority)).where(condition)
        )
        return result.scalar_one_or_none() or 0


class ForwardingRuleRepository(BaseRepository[ForwardingRule]):
    """Repository for ForwardingRule entities."""

    def __init__(self, session: AsyncSession):
        """Initialize forwarding rule repository."""
        super().__init__(ForwardingRule, session)

    async def list_ordered(self, scope: str, active_only: bool = False) -> list[ForwardingRule]:
        """List a scope's rules in evaluation order (priority, id).

        Args:
            scope: Webhook source ID
            active_only: Only return active, forward-enabled rules

        Returns:
            List of forwarding rules
        """
        stmt = select(ForwardingRule).where(ForwardingRule.source_webhook_id == scope)
        if active_only:
            stmt = stmt.where(
                ForwardingRule.is_active.is_(True),
                ForwardingRule.forward_enabled.is_(True),
            )
        stmt = stmt.order_by(ForwardingRule.priority, ForwardingRule.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def max_priority(self, scope: str) -> int:
        """Highest priority value in a scope, 0 if it has no rules."""
        result = await self.session.execute(
            select(func.max(ForwardingRule.priority)).where(ForwardingRule.source_webhook_id == scope)
        )
        return result.scalar_one_or_none() or 0

    async def record_success(self, rule_id: int, forwarded_at: datetime) -> None:
        """Increment the success counter in the caller's transaction."""
        await self.session.execute(
            update(ForwardingRule)
            .where(ForwardingRule.id == rule_id)
            .values(
                forward_count=ForwardingRule.forward_count + 1,
                last_forwarded_at=forwarded_at,
            )
        )
