"""Workspace repository."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.workspace import Workspace
from app.persistence.repositories.base import BaseRepository


class WorkspaceRepository(BaseRepository[Workspace]):
    """Repository for Workspace entities."""

    def __init__(self, session: AsyncSession):
        """Initialize workspace repository."""
        super().__init__(Workspace, session)

    async def get_active(self, id: int) -> Workspace | None:
        """Get workspace by ID if it is active."""
        stmt = select(Workspace).where(Workspace.id == id, Workspace.is_active.is_(True))
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()
