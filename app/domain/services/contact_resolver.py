"""Contact resolution: map an inbound lead to a stable per-source identity."""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.phone import InvalidPhoneError, normalize_phone
from app.persistence.models.contact import Contact
from app.persistence.repositories.contact_repository import ContactRepository
from app.settings import settings

logger = logging.getLogger(__name__)

CONTACT_FIELDS = ("first_name", "last_name", "email", "address", "city", "state", "zip_code")

PHONE_POLICY_REJECT = "reject"
PHONE_POLICY_ACCEPT = "accept"


class ContactResolver:
    """Resolves (source, phone) to exactly one non-deleted contact.

    The resolver never commits; the caller owns the transaction so the
    contact, the lead and its deliveries become visible together.
    """

    def __init__(self, session: AsyncSession, invalid_phone_policy: str | None = None) -> None:
        self.session = session
        self.contact_repo = ContactRepository(session)
        self.invalid_phone_policy = invalid_phone_policy or settings.invalid_phone_policy

    async def resolve(
        self,
        scope: str,
        raw_phone: str | None,
        attributes: dict[str, Any] | None = None,
    ) -> tuple[Contact, bool]:
        """Find or create the contact for a lead.

        Args:
            scope: Webhook source ID the lead arrived on
            raw_phone: Phone as submitted, in any common US format
            attributes: Contact fields from the lead (names, email, address)

        Returns:
            Tuple of (contact, is_new)

        Raises:
            InvalidPhoneError: If the phone is malformed and the policy is "reject"
        """
        values = {
            key: value
            for key, value in (attributes or {}).items()
            if key in CONTACT_FIELDS and value not in (None, "")
        }

        if not raw_phone or not raw_phone.strip():
            contact = await self.contact_repo.create_without_phone(scope, **values)
            logger.info("Contact created without phone", extra={"contact_id": contact.id})
            return contact, True

        try:
            phone = normalize_phone(raw_phone)
        except InvalidPhoneError:
            if self.invalid_phone_policy != PHONE_POLICY_ACCEPT:
                raise
            contact = await self.contact_repo.create_without_phone(scope, **values)
            logger.warning(
                "Malformed phone accepted without deduplication",
                extra={"contact_id": contact.id, "raw_phone": raw_phone},
            )
            return contact, True

        contact = await self.contact_repo.get_by_phone(scope, phone)
        if contact is not None:
            self._enrich(contact, values)
            return contact, False

        contact, created = await self.contact_repo.insert_or_fetch(scope, phone, **values)
        if not created:
            logger.info("Concurrent insert resolved to existing contact", extra={"contact_id": contact.id})
            self._enrich(contact, values)
        return contact, created

    @staticmethod
    def _enrich(contact: Contact, values: dict[str, Any]) -> None:
        """Fill fields the contact does not have yet; existing values always win."""
        for key, value in values.items():
            if not getattr(contact, key):
                setattr(contact, key, value)
