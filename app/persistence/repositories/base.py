"""Base repository with scope-scoped queries."""

from typing import Generic, TypeVar, Type
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.database import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """Base repository with query methods scoped to a webhook source.

    A scope of None means an unscoped (global admin) query. Models without a
    ``source_webhook_id`` column are always queried unscoped.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """Initialize repository with model and session."""
        self.model = model
        self.session = session

    def _scoped(self, stmt, scope: str | None):
        if scope is not None and hasattr(self.model, "source_webhook_id"):
            stmt = stmt.where(self.model.source_webhook_id == scope)
        return stmt

    async def get_by_id(self, scope: str | None, id: int) -> ModelType | None:
        """Get entity by ID, scoped to a webhook source."""
        stmt = self._scoped(select(self.model).where(self.model.id == id), scope)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list(
        self,
        scope: str | None,
        skip: int = 0,
        limit: int = 100,
        **filters
    ) -> list[ModelType]:
        """List entities, scoped to a webhook source."""
        stmt = self._scoped(select(self.model), scope)

        # Apply additional filters
        for key, value in filters.items():
            if hasattr(self.model, key):
                stmt = stmt.where(getattr(self.model, key) == value)

        stmt = stmt.order_by(self.model.id).offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def create(self, scope: str | None, *, commit: bool = True, **data) -> ModelType:
        """Create new entity in a scope.

        With ``commit=False`` the row is only flushed, so it joins the caller's
        transaction and gets its primary key.
        """
        if scope is not None and hasattr(self.model, "source_webhook_id"):
            data["source_webhook_id"] = scope
        instance = self.model(**data)
        self.session.add(instance)
        if commit:
            await self.session.commit()
            await self.session.refresh(instance)
        else:
            await self.session.flush()
        return instance

    async def update(self, scope: str | None, id: int, **data) -> ModelType | None:
        """Update entity, scoped to a webhook source."""
        instance = await self.get_by_id(scope, id)
        if instance is None:
            return None

        for key, value in data.items():
            setattr(instance, key, value)

        await self.session.commit()
        await self.session.refresh(instance)
        return instance

    async def delete(self, scope: str | None, id: int) -> bool:
        """Delete entity, scoped to a webhook source."""
        instance = await self.get_by_id(scope, id)
        if instance is None:
            return False

        await self.session.delete(instance)
        await self.session.commit()
        return True
