"""Appointment repository."""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.persistence.models.appointment import Appointment
from app.persistence.models.workspace import Workspace
from app.persistence.repositories.base import BaseRepository


class AppointmentRepository(BaseRepository[Appointment]):
    """Repository for Appointment entities."""

    def __init__(self, session: AsyncSession):
        """Initialize appointment repository."""
        super().__init__(Appointment, session)

    def _filtered(
        self,
        stmt,
        workspace_id: int | None = None,
        service_type: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ):
        if workspace_id is not None:
            stmt = stmt.where(Appointment.matched_workspace_id == workspace_id)
        if service_type is not None:
            stmt = stmt.where(Appointment.service_type == service_type)
        if from_date is not None:
            stmt = stmt.where(Appointment.appointment_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(Appointment.appointment_date <= to_date)
        return stmt

    async def search(
        self,
        workspace_id: int | None = None,
        service_type: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> list[Appointment]:
        """List appointments matching the filters, newest first.

        The date bounds apply to ``appointment_date`` and are inclusive.
        """
        stmt = self._filtered(select(Appointment), workspace_id, service_type, from_date, to_date)
        stmt = stmt.order_by(Appointment.created_at.desc(), Appointment.id.desc()).offset(skip).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(
        self,
        workspace_id: int | None = None,
        service_type: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
    ) -> int:
        """Count appointments matching the same filters as ``search``."""
        stmt = self._filtered(
            select(func.count(Appointment.id)), workspace_id, service_type, from_date, to_date
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def history(
        self, skip: int = 0, limit: int = 100
    ) -> list[tuple[Appointment, Workspace | None]]:
        """Appointments newest first, each with the workspace it was routed to."""
        stmt = (
            select(Appointment, Workspace)
            .outerjoin(Workspace, Workspace.id == Appointment.matched_workspace_id)
            .order_by(Appointment.created_at.desc(), Appointment.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [(appointment, workspace) for appointment, workspace in result.all()]
