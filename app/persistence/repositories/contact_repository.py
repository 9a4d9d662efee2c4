"""Contact repository."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ContactResolutionError
from app.persistence.models.contact import Contact
from app.persistence.repositories.base import BaseRepository

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

# A conflicting row soft-deleted between our insert and our read frees the
# phone again, so one more insert settles it
INSERT_OR_FETCH_ATTEMPTS = 2


class ContactRepository(BaseRepository[Contact]):
    """Repository for Contact entities."""

    def __init__(self, session: AsyncSession):
        """Initialize contact repository."""
        super().__init__(Contact, session)

    async def get_by_id(self, scope: str | None, id: int) -> Contact | None:
        """Get non-deleted contact by ID.

        Args:
            scope: Webhook source ID, or None for any source
            id: Contact ID

        Returns:
            Contact or None if not found or deleted
        """
        stmt = self._scoped(
            select(Contact).where(Contact.id == id, Contact.deleted_at.is_(None)),
            scope,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_phone(self, scope: str, phone: str) -> Contact | None:
        """Get the non-deleted contact holding a normalized phone in a scope."""
        stmt = select(Contact).where(
            Contact.source_webhook_id == scope,
            Contact.phone == phone,
            Contact.deleted_at.is_(None),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert_or_fetch(
        self, scope: str, phone: str, **attributes
    ) -> tuple[Contact, bool]:
        """Atomically create the contact for (scope, phone) or fetch the existing one.

        Relies on the partial unique index over non-deleted contacts: the
        insert is a no-op when another transaction already holds the key, in
        which case the committed winner is read back.

        Args:
            scope: Webhook source ID
            phone: Normalized phone number
            **attributes: Initial identity fields for a new contact

        Returns:
            Tuple of (contact, created) where created is True only when this
            call inserted the row

        Raises:
            ContactResolutionError: If the database has no conflict-aware
                insert, or the conflicting contact kept disappearing
        """
        dialect = self.session.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise ContactResolutionError(f"Contact deduplication is not supported on {dialect}")

        for _ in range(INSERT_OR_FETCH_ATTEMPTS):
            now = datetime.utcnow()
            stmt = (
                insert(Contact)
                .values(
                    **attributes,
                    source_webhook_id=scope,
                    phone=phone,
                    created_at=now,
                    updated_at=now,
                )
                .on_conflict_do_nothing(
                    index_elements=["source_webhook_id", "phone"],
                    index_where=Contact.deleted_at.is_(None),
                )
                .returning(Contact.id)
            )
            result = await self.session.execute(stmt)
            inserted_id = result.scalar_one_or_none()

            if inserted_id is not None:
                contact = await self.session.get(Contact, inserted_id)
                return contact, True

            contact = await self.get_by_phone(scope, phone)
            if contact is not None:
                return contact, False

        raise ContactResolutionError(
            f"Contact for {phone} in {scope} changed concurrently, retry the submission",
            retryable=True,
        )

    async def create_without_phone(self, scope: str, **attributes) -> Contact:
        """Create a phone-less contact. These are never deduplicated."""
        return await self.create(scope, commit=False, phone=None, **attributes)

    async def soft_delete(self, scope: str, id: int) -> bool:
        """Mark a contact deleted, freeing its phone for a new identity."""
        contact = await self.get_by_id(scope, id)
        if contact is None:
            return False
        contact.deleted_at = datetime.utcnow()
        await self.session.commit()
        return True
