"""Tests for contact resolution and the insert-or-fetch dedup path."""

import asyncio
from datetime import datetime

import pytest
from sqlalchemy import create_engine, event, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.exceptions import ContactResolutionError
from app.core.phone import InvalidPhoneError
from app.domain.services.contact_resolver import PHONE_POLICY_ACCEPT, ContactResolver
from app.persistence.database import Base
from app.persistence.models.contact import Contact
from app.persistence.repositories.contact_repository import ContactRepository

SCOPE = "solar-leads"


async def count_contacts(session, scope=SCOPE):
    result = await session.execute(
        select(func.count(Contact.id)).where(Contact.source_webhook_id == scope)
    )
    return result.scalar_one()


async def test_first_lead_creates_contact(db_session):
    resolver = ContactResolver(db_session)

    contact, is_new = await resolver.resolve(
        SCOPE, "(281) 788-2316", {"first_name": "Dana", "email": "dana@example.com"}
    )
    await db_session.commit()

    assert is_new is True
    assert contact.phone == "+12817882316"
    assert contact.first_name == "Dana"
    assert contact.source_webhook_id == SCOPE


async def test_same_phone_in_any_format_resolves_to_same_contact(db_session):
    resolver = ContactResolver(db_session)
    first, _ = await resolver.resolve(SCOPE, "281-788-2316")
    await db_session.commit()

    second, is_new = await resolver.resolve(SCOPE, "+1 (281) 788 2316")
    await db_session.commit()

    assert is_new is False
    assert second.id == first.id
    assert await count_contacts(db_session) == 1


async def test_same_phone_in_other_scope_is_a_different_contact(db_session):
    resolver = ContactResolver(db_session)
    first, _ = await resolver.resolve(SCOPE, "2817882316")
    other, is_new = await resolver.resolve("hvac-leads", "2817882316")
    await db_session.commit()

    assert is_new is True
    assert other.id != first.id


async def test_existing_values_win_and_gaps_are_filled(db_session):
    resolver = ContactResolver(db_session)
    contact, _ = await resolver.resolve(SCOPE, "2817882316", {"first_name": "Dana"})
    await db_session.commit()

    again, _ = await resolver.resolve(
        SCOPE, "2817882316", {"first_name": "Danielle", "email": "dana@example.com"}
    )
    await db_session.commit()

    assert again.id == contact.id
    assert again.first_name == "Dana"
    assert again.email == "dana@example.com"


async def test_invalid_phone_is_rejected_by_default(db_session):
    resolver = ContactResolver(db_session, invalid_phone_policy="reject")

    with pytest.raises(InvalidPhoneError):
        await resolver.resolve(SCOPE, "555-1234")

    assert await count_contacts(db_session) == 0


async def test_invalid_phone_accepted_without_dedup_when_configured(db_session):
    resolver = ContactResolver(db_session, invalid_phone_policy=PHONE_POLICY_ACCEPT)

    first, first_new = await resolver.resolve(SCOPE, "555-1234")
    second, second_new = await resolver.resolve(SCOPE, "555-1234")
    await db_session.commit()

    assert first_new and second_new
    assert first.id != second.id
    assert first.phone is None


async def test_leads_without_phone_never_dedupe(db_session):
    resolver = ContactResolver(db_session)

    first, _ = await resolver.resolve(SCOPE, None, {"email": "same@example.com"})
    second, is_new = await resolver.resolve(SCOPE, "   ", {"email": "same@example.com"})
    await db_session.commit()

    assert is_new is True
    assert first.id != second.id


async def test_soft_deleted_contact_frees_the_phone(db_session):
    resolver = ContactResolver(db_session)
    contact, _ = await resolver.resolve(SCOPE, "2817882316")
    await db_session.commit()

    assert await ContactRepository(db_session).soft_delete(SCOPE, contact.id)

    replacement, is_new = await resolver.resolve(SCOPE, "2817882316")
    await db_session.commit()

    assert is_new is True
    assert replacement.id != contact.id


async def test_insert_or_fetch_returns_committed_winner(session_factory):
    async with session_factory() as winner_session:
        winner, created = await ContactRepository(winner_session).insert_or_fetch(
            SCOPE, "+12817882316", first_name="Winner"
        )
        await winner_session.commit()
    assert created is True

    async with session_factory() as loser_session:
        loser, created = await ContactRepository(loser_session).insert_or_fetch(
            SCOPE, "+12817882316", first_name="Loser"
        )
        await loser_session.commit()

    assert created is False
    assert loser.id == winner.id
    assert loser.first_name == "Winner"


async def test_insert_or_fetch_ignores_deleted_rows(db_session):
    repo = ContactRepository(db_session)
    deleted = Contact(
        source_webhook_id=SCOPE,
        phone="+12817882316",
        deleted_at=datetime.utcnow(),
    )
    db_session.add(deleted)
    await db_session.commit()

    contact, created = await repo.insert_or_fetch(SCOPE, "+12817882316")
    await db_session.commit()

    assert created is True
    assert contact.id != deleted.id


async def test_insert_or_fetch_retries_when_winner_vanishes(db_session, monkeypatch):
    existing = Contact(source_webhook_id=SCOPE, phone="+12817882316", first_name="Old")
    db_session.add(existing)
    await db_session.commit()
    lookup = ContactRepository.get_by_phone

    async def delete_then_miss(self, scope, phone):
        # Another request soft-deletes the holder between our insert and read
        monkeypatch.setattr(ContactRepository, "get_by_phone", lookup)
        await self.session.execute(
            update(Contact).where(Contact.id == existing.id).values(deleted_at=datetime.utcnow())
        )
        return None

    monkeypatch.setattr(ContactRepository, "get_by_phone", delete_then_miss)

    contact, created = await ContactRepository(db_session).insert_or_fetch(
        SCOPE, "+12817882316", first_name="New"
    )
    await db_session.commit()

    assert created is True
    assert contact.id != existing.id
    assert contact.first_name == "New"


async def test_insert_or_fetch_gives_up_when_winner_keeps_vanishing(db_session, monkeypatch):
    db_session.add(Contact(source_webhook_id=SCOPE, phone="+12817882316"))
    await db_session.commit()

    async def always_missing(self, scope, phone):
        return None

    monkeypatch.setattr(ContactRepository, "get_by_phone", always_missing)

    with pytest.raises(ContactResolutionError) as exc_info:
        await ContactRepository(db_session).insert_or_fetch(SCOPE, "+12817882316")

    assert exc_info.value.retryable is True


async def test_concurrent_resolves_yield_one_contact(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrent.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    # SQLite serializes writers; take the write lock at BEGIN so concurrent
    # transactions wait for each other instead of failing on lock upgrade
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    sync_engine = create_engine(f"sqlite:///{tmp_path / 'concurrent.db'}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def submit(i):
        async with factory() as session:
            contact, is_new = await ContactResolver(session).resolve(
                SCOPE, "281-788-2316", {"first_name": f"Lead {i}"}
            )
            await session.commit()
            return contact.id, is_new

    results = await asyncio.gather(*(submit(i) for i in range(8)))

    assert len({contact_id for contact_id, _ in results}) == 1
    assert sum(1 for _, is_new in results if is_new) == 1

    async with factory() as session:
        assert await count_contacts(session) == 1
    await engine.dispose()
