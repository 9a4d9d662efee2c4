"""Tests for forwarding attempts, retries, skips and recovery."""

import json
from datetime import datetime, timedelta

import httpx
import pytest

from app.domain.models.lead_submission import LeadSubmission
from app.domain.services.forwarding_dispatcher import ForwardingDispatcher
from app.domain.services.lead_ingestion_service import LeadIngestionService
from app.domain.services.rule_service import RuleService
from app.domain.services.source_service import SourceService
from app.infrastructure.webhook_client import WebhookClient
from app.persistence.models.forwarding import DeliveryStatus, ForwardingDelivery, ForwardStatus
from app.persistence.models.routing_rule import ForwardingRule
from app.persistence.models.webhook_source import WebhookSource
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.forwarding_repository import ForwardingLogRepository

SCOPE = "solar-leads"
TARGET_URL = "https://partner.example.com/hook"


class FakeTarget:
    """httpx mock transport answering with a scripted list of status codes."""

    def __init__(self, *status_codes: int) -> None:
        self.status_codes = list(status_codes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        code = self.status_codes.pop(0) if len(self.status_codes) > 1 else self.status_codes[0]
        return httpx.Response(code, text="ok" if code < 300 else "upstream error")


def make_dispatcher(queue, session_factory, target, **kwargs):
    client = WebhookClient(timeout=5, transport=httpx.MockTransport(target))
    kwargs.setdefault("backoff_seconds", [0])
    return ForwardingDispatcher(queue, session_factory=session_factory, client=client, **kwargs)


@pytest.fixture
async def delivery_id(db_session, queue):
    """One lead ingested into a source with a single catch-all forwarding rule."""
    await SourceService(db_session).create_source(webhook_id=SCOPE, name="Solar Leads")
    await RuleService(db_session).create_forwarding_rule(
        SCOPE,
        target_webhook_id="partner",
        target_webhook_url=TARGET_URL,
        product_types=["Solar"],
        zip_codes=["*"],
    )
    result = await LeadIngestionService(db_session, queue).ingest(
        SCOPE,
        LeadSubmission(
            first_name="Dana",
            last_name="Reyes",
            email="dana@example.com",
            source="facebook",
            phone="281-788-2316",
            product_type="Solar",
            zip_code="90210",
            state="CA",
            raw_payload={"firstName": "Dana", "utm": "spring"},
        ),
    )
    queue.enqueued.clear()
    return result.delivery_ids[0]


async def load(session_factory, model, id):
    async with session_factory() as session:
        return await session.get(model, id)


async def test_successful_delivery(session_factory, queue, delivery_id):
    target = FakeTarget(200)
    dispatcher = make_dispatcher(queue, session_factory, target)

    entry = await dispatcher.dispatch(delivery_id)

    assert entry.forward_status == ForwardStatus.SUCCESS
    assert entry.http_status_code == 200
    assert entry.retry_count == 0
    assert entry.matched_product == "Solar"
    assert entry.matched_zip == "*"

    delivery = await load(session_factory, ForwardingDelivery, delivery_id)
    assert delivery.status == DeliveryStatus.SUCCESS
    assert delivery.attempt_count == 1
    assert delivery.completed_at is not None
    assert queue.enqueued == []

    rule = await load(session_factory, ForwardingRule, delivery.rule_id)
    assert rule.forward_count == 1
    assert rule.last_forwarded_at is not None


async def test_payload_and_headers(session_factory, queue, delivery_id):
    target = FakeTarget(200)
    await make_dispatcher(queue, session_factory, target).dispatch(delivery_id)

    (request,) = target.requests
    body = json.loads(request.content)
    assert request.headers["X-Forwarded-From"] == SCOPE
    assert request.headers["Content-Type"] == "application/json"
    assert body["lead"]["phone"] == "+12817882316"
    assert body["contact"]["first_name"] == "Dana"
    assert body["forwarded_from"] == SCOPE
    assert body["original_payload"] == {"firstName": "Dana", "utm": "spring"}
    assert request.headers["X-Original-Lead-Id"] == str(body["lead"]["id"])


async def test_server_errors_exhaust_retries(session_factory, queue, delivery_id):
    target = FakeTarget(500)
    dispatcher = make_dispatcher(queue, session_factory, target, max_retries=3)

    entries = []
    for _ in range(4):
        entries.append(await dispatcher.dispatch(delivery_id))

    assert [e.forward_status for e in entries] == [
        ForwardStatus.RETRY,
        ForwardStatus.RETRY,
        ForwardStatus.RETRY,
        ForwardStatus.FAILED,
    ]
    assert [e.retry_count for e in entries] == [0, 1, 2, 3]
    assert all(e.http_status_code == 500 for e in entries)
    assert "gave up after 4 attempts" in entries[-1].error_message
    assert queue.enqueued == [(delivery_id, 0)] * 3
    assert len(target.requests) == 4

    delivery = await load(session_factory, ForwardingDelivery, delivery_id)
    assert delivery.status == DeliveryStatus.FAILED
    assert delivery.attempt_count == 4

    # A redelivered task for a finished delivery does nothing
    assert await dispatcher.dispatch(delivery_id) is None

    async with session_factory() as session:
        log = await ForwardingLogRepository(session).list_by_delivery(delivery_id)
    assert len(log) == 4


async def test_retry_then_success(session_factory, queue, delivery_id):
    dispatcher = make_dispatcher(queue, session_factory, FakeTarget(503, 200))

    first = await dispatcher.dispatch(delivery_id)
    second = await dispatcher.dispatch(delivery_id)

    assert first.forward_status == ForwardStatus.RETRY
    assert second.forward_status == ForwardStatus.SUCCESS
    assert second.retry_count == 1


async def test_retry_waits_for_backoff(session_factory, queue, delivery_id):
    dispatcher = make_dispatcher(
        queue, session_factory, FakeTarget(500), backoff_seconds=[60, 120]
    )

    await dispatcher.dispatch(delivery_id)

    assert queue.enqueued == [(delivery_id, 60)]
    # A duplicate task firing before the retry is due must not attempt
    assert await dispatcher.dispatch(delivery_id) is None
    delivery = await load(session_factory, ForwardingDelivery, delivery_id)
    assert delivery.status == DeliveryStatus.PENDING
    assert delivery.next_attempt_at > datetime.utcnow() + timedelta(seconds=30)


async def test_connection_errors_are_retried(session_factory, queue, delivery_id):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = WebhookClient(timeout=5, transport=httpx.MockTransport(refuse))
    dispatcher = ForwardingDispatcher(
        queue, session_factory=session_factory, client=client, backoff_seconds=[0]
    )

    entry = await dispatcher.dispatch(delivery_id)

    assert entry.forward_status == ForwardStatus.RETRY
    assert entry.http_status_code is None
    assert "connection refused" in entry.error_message


async def test_toggle_off_skips_without_calling_target(session_factory, queue, delivery_id):
    async with session_factory() as session:
        await SourceService(session).set_forwarding_enabled(SCOPE, False)
    target = FakeTarget(200)

    entry = await make_dispatcher(queue, session_factory, target).dispatch(delivery_id)

    assert entry.forward_status == ForwardStatus.SKIPPED
    assert target.requests == []
    delivery = await load(session_factory, ForwardingDelivery, delivery_id)
    assert delivery.status == DeliveryStatus.SKIPPED


async def test_toggle_is_read_at_attempt_time(session_factory, queue, delivery_id):
    target = FakeTarget(500, 200)
    dispatcher = make_dispatcher(queue, session_factory, target)
    await dispatcher.dispatch(delivery_id)

    async with session_factory() as session:
        await SourceService(session).set_forwarding_enabled(SCOPE, False)

    entry = await dispatcher.dispatch(delivery_id)

    assert entry.forward_status == ForwardStatus.SKIPPED
    assert len(target.requests) == 1


async def test_disabled_rule_skips(session_factory, queue, delivery_id):
    delivery = await load(session_factory, ForwardingDelivery, delivery_id)
    async with session_factory() as session:
        await RuleService(session).update_forwarding_rule(SCOPE, delivery.rule_id, forward_enabled=False)

    entry = await make_dispatcher(queue, session_factory, FakeTarget(200)).dispatch(delivery_id)

    assert entry.forward_status == ForwardStatus.SKIPPED
    assert "disabled" in entry.error_message


async def test_deleted_rule_skips(session_factory, queue, delivery_id):
    delivery = await load(session_factory, ForwardingDelivery, delivery_id)
    async with session_factory() as session:
        await RuleService(session).delete_forwarding_rule(SCOPE, delivery.rule_id)

    entry = await make_dispatcher(queue, session_factory, FakeTarget(200)).dispatch(delivery_id)

    assert entry.forward_status == ForwardStatus.SKIPPED
    assert "deleted" in entry.error_message


async def test_deleted_contact_fails_delivery(session_factory, queue, delivery_id):
    delivery = await load(session_factory, ForwardingDelivery, delivery_id)
    async with session_factory() as session:
        await ContactRepository(session).soft_delete(SCOPE, delivery.contact_id)
    target = FakeTarget(200)

    entry = await make_dispatcher(queue, session_factory, target).dispatch(delivery_id)

    assert entry.forward_status == ForwardStatus.FAILED
    assert f"Contact {delivery.contact_id}" in entry.error_message
    assert target.requests == []


async def test_toggle_off_wins_over_missing_contact(session_factory, queue, delivery_id):
    delivery = await load(session_factory, ForwardingDelivery, delivery_id)
    async with session_factory() as session:
        await SourceService(session).set_forwarding_enabled(SCOPE, False)
    async with session_factory() as session:
        await ContactRepository(session).soft_delete(SCOPE, delivery.contact_id)

    entry = await make_dispatcher(queue, session_factory, FakeTarget(200)).dispatch(delivery_id)

    assert entry.forward_status == ForwardStatus.SKIPPED
    assert entry.error_message == "Forwarding disabled for source"


async def test_unexpected_error_returns_delivery_to_pending(session_factory, queue, delivery_id):
    def explode(request):
        raise RuntimeError("transport bug")

    client = WebhookClient(timeout=5, transport=httpx.MockTransport(explode))
    crashing = ForwardingDispatcher(
        queue, session_factory=session_factory, client=client, backoff_seconds=[0]
    )

    with pytest.raises(RuntimeError):
        await crashing.dispatch(delivery_id)

    delivery = await load(session_factory, ForwardingDelivery, delivery_id)
    assert delivery.status == DeliveryStatus.PENDING
    assert delivery.attempt_count == 1
    assert queue.enqueued == [(delivery_id, 0)]

    async with session_factory() as session:
        (first,) = await ForwardingLogRepository(session).list_by_delivery(delivery_id)
    assert first.forward_status == ForwardStatus.RETRY
    assert "RuntimeError" in first.error_message

    target = FakeTarget(200)
    entry = await make_dispatcher(queue, session_factory, target).dispatch(delivery_id)

    assert entry.forward_status == ForwardStatus.SUCCESS
    assert entry.retry_count == 1
    assert len(target.requests) == 1


async def test_unexpected_error_on_last_attempt_fails(session_factory, queue, delivery_id):
    def explode(request):
        raise RuntimeError("transport bug")

    client = WebhookClient(timeout=5, transport=httpx.MockTransport(explode))
    crashing = ForwardingDispatcher(
        queue, session_factory=session_factory, client=client, max_retries=0
    )

    with pytest.raises(RuntimeError):
        await crashing.dispatch(delivery_id)

    delivery = await load(session_factory, ForwardingDelivery, delivery_id)
    assert delivery.status == DeliveryStatus.FAILED
    assert queue.enqueued == []


async def test_unknown_delivery_is_a_noop(session_factory, queue):
    dispatcher = make_dispatcher(queue, session_factory, FakeTarget(200))
    assert await dispatcher.dispatch(12345) is None


async def test_success_updates_source_statistics(session_factory, queue, delivery_id):
    await make_dispatcher(queue, session_factory, FakeTarget(201)).dispatch(delivery_id)

    async with session_factory() as session:
        source = await SourceService(session).get_source(SCOPE)
        stats = await SourceService(session).get_forwarding_stats(SCOPE)

    assert source.auto_forward_count == 1
    assert stats["success"] == 1
    assert stats["success_rate"] == 100.0
    assert stats["top_targets"] == [{"target_webhook_id": "partner", "count": 1}]


async def test_recover_releases_stale_and_enqueues_pending(session_factory, queue, delivery_id):
    async with session_factory() as session:
        delivery = await session.get(ForwardingDelivery, delivery_id)
        delivery.status = DeliveryStatus.IN_FLIGHT
        delivery.updated_at = datetime.utcnow() - timedelta(minutes=10)
        await session.commit()

    dispatcher = make_dispatcher(queue, session_factory, FakeTarget(200))
    assert await dispatcher.recover(stale_after_seconds=60) == 1

    assert queue.delivery_ids == [delivery_id]
    delivery = await load(session_factory, ForwardingDelivery, delivery_id)
    assert delivery.status == DeliveryStatus.PENDING


async def test_recover_leaves_fresh_in_flight_alone(session_factory, queue, delivery_id):
    async with session_factory() as session:
        delivery = await session.get(ForwardingDelivery, delivery_id)
        delivery.status = DeliveryStatus.IN_FLIGHT
        await session.commit()

    dispatcher = make_dispatcher(queue, session_factory, FakeTarget(200))

    assert await dispatcher.recover(stale_after_seconds=60) == 0
    assert queue.enqueued == []


async def test_toggle_state_survives_in_database(session_factory):
    async with session_factory() as session:
        session.add(WebhookSource(webhook_id="toggle-src", name="Toggle", forwarding_enabled=False))
        await session.commit()

    async with session_factory() as session:
        service = SourceService(session)
        assert (await service.get_source("toggle-src")).forwarding_enabled is False
        await service.set_forwarding_enabled("toggle-src", True)

    async with session_factory() as session:
        assert (await SourceService(session).get_source("toggle-src")).forwarding_enabled is True
