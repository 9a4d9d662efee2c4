"""Webhook source repository."""

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.webhook_source import WebhookSource
from app.persistence.repositories.base import BaseRepository


class WebhookSourceRepository(BaseRepository[WebhookSource]):
    """Repository for WebhookSource entities."""

    def __init__(self, session: AsyncSession):
        """Initialize webhook source repository."""
        super().__init__(WebhookSource, session)

    async def get_by_webhook_id(
        self, webhook_id: str, active_only: bool = False
    ) -> WebhookSource | None:
        """Get a non-deleted source by its public webhook ID.

        Args:
            webhook_id: Public webhook identifier
            active_only: Also require ``is_active``

        Returns:
            WebhookSource or None if not found
        """
        stmt = select(WebhookSource).where(
            WebhookSource.webhook_id == webhook_id,
            WebhookSource.deleted_at.is_(None),
        )
        if active_only:
            stmt = stmt.where(WebhookSource.is_active.is_(True))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_sources(self, skip: int = 0, limit: int = 100) -> list[WebhookSource]:
        """List non-deleted sources."""
        stmt = (
            select(WebhookSource)
            .where(WebhookSource.deleted_at.is_(None))
            .order_by(WebhookSource.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def is_forwarding_enabled(self, webhook_id: str) -> bool:
        """Read the master toggle straight from the database.

        A missing or deleted source counts as disabled.
        """
        stmt = select(WebhookSource.forwarding_enabled).where(
            WebhookSource.webhook_id == webhook_id,
            WebhookSource.deleted_at.is_(None),
        )
        result = await self.session.execute(stmt)
        return bool(result.scalar_one_or_none())

    async def record_lead_received(self, webhook_id: str, received_at: datetime) -> None:
        """Bump lead statistics in the caller's transaction."""
        await self.session.execute(
            update(WebhookSource)
            .where(WebhookSource.webhook_id == webhook_id)
            .values(
                total_leads=WebhookSource.total_leads + 1,
                last_lead_at=received_at,
            )
        )

    async def record_forward_success(self, webhook_id: str, forwarded_at: datetime) -> None:
        """Bump forwarding statistics in the caller's transaction."""
        await self.session.execute(
            update(WebhookSource)
            .where(WebhookSource.webhook_id == webhook_id)
            .values(
                auto_forward_count=WebhookSource.auto_forward_count + 1,
                last_forwarded_at=forwarded_at,
            )
        )
