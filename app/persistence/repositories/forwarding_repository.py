"""Forwarding delivery and forwarding log repositories."""

from datetime import datetime
from typing import Any

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.forwarding import (
    DeliveryStatus,
    ForwardingDelivery,
    ForwardingLogEntry,
    ForwardStatus,
)
from app.persistence.repositories.base import BaseRepository


class ForwardingDeliveryRepository(BaseRepository[ForwardingDelivery]):
    """Repository for ForwardingDelivery entities."""

    def __init__(self, session: AsyncSession):
        """Initialize forwarding delivery repository."""
        super().__init__(ForwardingDelivery, session)

    async def claim(self, delivery_id: int, due_before: datetime | None = None) -> bool:
        """Move a pending, due delivery to in_flight.

        The conditional update is the claim: exactly one worker wins even if
        the queue hands the same delivery out twice, and a duplicate that
        fires before the scheduled retry time does not cut the backoff short.
        Commits immediately.

        Args:
            delivery_id: Delivery ID
            due_before: Deliveries scheduled after this time are not claimed

        Returns:
            True if this call claimed the delivery
        """
        due_before = due_before or datetime.utcnow()
        result = await self.session.execute(
            update(ForwardingDelivery)
            .where(
                ForwardingDelivery.id == delivery_id,
                ForwardingDelivery.status == DeliveryStatus.PENDING,
                or_(
                    ForwardingDelivery.next_attempt_at.is_(None),
                    ForwardingDelivery.next_attempt_at <= due_before,
                ),
            )
            .values(status=DeliveryStatus.IN_FLIGHT, updated_at=datetime.utcnow())
        )
        await self.session.commit()
        return result.rowcount == 1

    async def list_pending(self) -> list[ForwardingDelivery]:
        """List deliveries waiting for an attempt, earliest due first."""
        stmt = (
            select(ForwardingDelivery)
            .where(ForwardingDelivery.status == DeliveryStatus.PENDING)
            .order_by(ForwardingDelivery.next_attempt_at, ForwardingDelivery.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def release_in_flight(self, claimed_before: datetime) -> int:
        """Return stale in_flight deliveries to pending after a restart.

        Args:
            claimed_before: Only deliveries claimed before this time are released

        Returns:
            Number of deliveries released
        """
        result = await self.session.execute(
            update(ForwardingDelivery)
            .where(
                ForwardingDelivery.status == DeliveryStatus.IN_FLIGHT,
                ForwardingDelivery.updated_at < claimed_before,
            )
            .values(status=DeliveryStatus.PENDING, updated_at=datetime.utcnow())
        )
        await self.session.commit()
        return result.rowcount

    async def list_by_lead(self, lead_id: int) -> list[ForwardingDelivery]:
        """List the deliveries created for a lead."""
        stmt = (
            select(ForwardingDelivery)
            .where(ForwardingDelivery.lead_id == lead_id)
            .order_by(ForwardingDelivery.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class ForwardingLogRepository(BaseRepository[ForwardingLogEntry]):
    """Repository for the append-only forwarding log."""

    def __init__(self, session: AsyncSession):
        """Initialize forwarding log repository."""
        super().__init__(ForwardingLogEntry, session)

    def _filtered(
        self,
        stmt,
        scope: str,
        status: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ):
        stmt = stmt.where(ForwardingLogEntry.source_webhook_id == scope)
        if status:
            stmt = stmt.where(ForwardingLogEntry.forward_status == status)
        if from_date:
            stmt = stmt.where(ForwardingLogEntry.forwarded_at >= from_date)
        if to_date:
            stmt = stmt.where(ForwardingLogEntry.forwarded_at <= to_date)
        return stmt

    async def list_entries(
        self,
        scope: str,
        status: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[ForwardingLogEntry], int]:
        """List log entries of a scope, newest first.

        Args:
            scope: Webhook source ID
            status: Optional forward_status filter
            from_date: Only entries at or after this time
            to_date: Only entries at or before this time
            skip: Number of entries to skip
            limit: Maximum number of entries to return

        Returns:
            Tuple of (entries, total matching count)
        """
        count_stmt = self._filtered(
            select(func.count(ForwardingLogEntry.id)), scope, status, from_date, to_date
        )
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            self._filtered(select(ForwardingLogEntry), scope, status, from_date, to_date)
            .order_by(ForwardingLogEntry.forwarded_at.desc(), ForwardingLogEntry.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def list_by_delivery(self, delivery_id: int) -> list[ForwardingLogEntry]:
        """List every attempt of one delivery in the order they happened."""
        stmt = (
            select(ForwardingLogEntry)
            .where(ForwardingLogEntry.delivery_id == delivery_id)
            .order_by(ForwardingLogEntry.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_stats(self, scope: str, top_targets: int = 5) -> dict[str, Any]:
        """Aggregate forwarding statistics for a scope.

        Returns:
            Dict with total, success, failed, retry, skipped counts, the last
            forward time and the most frequently successful targets
        """
        status_counts = select(
            func.count(ForwardingLogEntry.id),
            *(
                func.sum(case((ForwardingLogEntry.forward_status == value, 1), else_=0))
                for value in (
                    ForwardStatus.SUCCESS,
                    ForwardStatus.FAILED,
                    ForwardStatus.RETRY,
                    ForwardStatus.SKIPPED,
                )
            ),
            func.max(ForwardingLogEntry.forwarded_at),
        ).where(ForwardingLogEntry.source_webhook_id == scope)
        row = (await self.session.execute(status_counts)).one()
        total, success, failed, retry, skipped, last_forward_at = row

        targets_stmt = (
            select(
                ForwardingLogEntry.target_webhook_id,
                func.count(ForwardingLogEntry.id).label("count"),
            )
            .where(
                ForwardingLogEntry.source_webhook_id == scope,
                ForwardingLogEntry.forward_status == ForwardStatus.SUCCESS,
            )
            .group_by(ForwardingLogEntry.target_webhook_id)
            .order_by(func.count(ForwardingLogEntry.id).desc(), ForwardingLogEntry.target_webhook_id)
            .limit(top_targets)
        )
        targets = (await self.session.execute(targets_stmt)).all()

        return {
            "total": total or 0,
            "success": success or 0,
            "failed": failed or 0,
            "retry": retry or 0,
            "skipped": skipped or 0,
            "last_forward_at": last_forward_at,
            "top_targets": [
                {"target_webhook_id": target, "count": count} for target, count in targets
            ],
        }
