"""Lead repository."""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.persistence.models.lead import Lead
from app.persistence.repositories.base import BaseRepository


class LeadRepository(BaseRepository[Lead]):
    """Repository for Lead entities."""

    def __init__(self, session: AsyncSession):
        """Initialize lead repository."""
        super().__init__(Lead, session)

    async def list_by_contact(self, contact_id: int) -> list[Lead]:
        """List all leads resolved to a contact, oldest first.

        Args:
            contact_id: Contact ID

        Returns:
            List of leads
        """
        stmt = (
            select(Lead)
            .where(Lead.contact_id == contact_id)
            .order_by(Lead.created_at, Lead.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
