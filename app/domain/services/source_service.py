"""Webhook source administration, the master forwarding toggle and forwarding reports."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import DuplicateSourceError, SourceNotFoundError
from app.persistence.models.forwarding import ForwardingLogEntry
from app.persistence.models.webhook_source import WebhookSource
from app.persistence.repositories.forwarding_repository import ForwardingLogRepository
from app.persistence.repositories.source_repository import WebhookSourceRepository

logger = logging.getLogger(__name__)


class SourceService:
    """Service for webhook sources."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.source_repo = WebhookSourceRepository(session)
        self.log_repo = ForwardingLogRepository(session)

    async def create_source(
        self,
        webhook_id: str,
        name: str,
        description: str | None = None,
        lead_type: str | None = None,
        forwarding_enabled: bool = True,
    ) -> WebhookSource:
        """Create a webhook source.

        Raises:
            DuplicateSourceError: If the webhook ID is taken, including by a deleted source
        """
        try:
            source = await self.source_repo.create(
                None,
                webhook_id=webhook_id,
                name=name,
                description=description,
                lead_type=lead_type,
                forwarding_enabled=forwarding_enabled,
            )
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateSourceError(webhook_id) from e
        logger.info("Webhook source created", extra={"webhook_id": webhook_id})
        return source

    async def get_source(self, webhook_id: str) -> WebhookSource:
        source = await self.source_repo.get_by_webhook_id(webhook_id)
        if source is None:
            raise SourceNotFoundError(webhook_id)
        return source

    async def list_sources(self, skip: int = 0, limit: int = 100) -> list[WebhookSource]:
        return await self.source_repo.list_sources(skip=skip, limit=limit)

    async def delete_source(self, webhook_id: str) -> None:
        """Soft delete: the source stops accepting leads but its history stays."""
        source = await self.get_source(webhook_id)
        source.deleted_at = datetime.utcnow()
        source.is_active = False
        await self.session.commit()
        logger.info("Webhook source deleted", extra={"webhook_id": webhook_id})

    async def set_forwarding_enabled(self, webhook_id: str, enabled: bool) -> WebhookSource:
        """Flip the master toggle. Last writer wins.

        Deliveries already queued observe the new value on their next attempt.
        """
        source = await self.get_source(webhook_id)
        source.forwarding_enabled = enabled
        await self.session.commit()
        await self.session.refresh(source)
        logger.info(
            "Forwarding toggle changed",
            extra={"webhook_id": webhook_id, "forwarding_enabled": enabled},
        )
        return source

    async def get_forwarding_log(
        self,
        webhook_id: str,
        status: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[ForwardingLogEntry], int]:
        await self.get_source(webhook_id)
        return await self.log_repo.list_entries(
            webhook_id,
            status=status,
            from_date=from_date,
            to_date=to_date,
            skip=skip,
            limit=limit,
        )

    async def get_forwarding_stats(self, webhook_id: str) -> dict[str, Any]:
        """Forwarding totals for a source.

        ``success_rate`` is the percentage of successful attempts among
        attempts that ended in success or terminal failure.
        """
        source = await self.get_source(webhook_id)
        stats = await self.log_repo.get_stats(webhook_id)
        decided = stats["success"] + stats["failed"]
        stats["success_rate"] = round(stats["success"] / decided * 100, 2) if decided else 0.0
        stats["forwarding_enabled"] = source.forwarding_enabled
        return stats
