"""Tests for the delivery queues and the outbound webhook client."""

import asyncio

import httpx
import pytest

from app.core.exceptions import WebhookDeliveryError
from app.infrastructure.delivery_queue import (
    FORWARDING_WORKER_PATH,
    CloudTasksDeliveryQueue,
    LocalDeliveryQueue,
)
from app.infrastructure.webhook_client import RESPONSE_BODY_LIMIT, WebhookClient


class TestLocalDeliveryQueue:
    async def test_runs_handler_after_delay(self):
        seen = []

        async def handler(delivery_id):
            seen.append(delivery_id)

        queue = LocalDeliveryQueue(max_concurrency=2)
        queue.start(handler)
        await queue.enqueue(1)
        await queue.enqueue(2, delay_seconds=0.01)
        await queue.drain()

        assert sorted(seen) == [1, 2]

    async def test_retries_enqueued_by_handler_are_drained(self):
        attempts = []
        queue = LocalDeliveryQueue()

        async def handler(delivery_id):
            attempts.append(delivery_id)
            if len(attempts) < 3:
                await queue.enqueue(delivery_id)

        queue.start(handler)
        await queue.enqueue(7)
        await queue.drain()

        assert attempts == [7, 7, 7]

    async def test_crashing_handler_does_not_break_queue(self):
        seen = []

        async def handler(delivery_id):
            if delivery_id == 1:
                raise RuntimeError("boom")
            seen.append(delivery_id)

        queue = LocalDeliveryQueue()
        queue.start(handler)
        await queue.enqueue(1)
        await queue.enqueue(2)
        await queue.drain()

        assert seen == [2]

    async def test_enqueue_before_start_is_dropped(self):
        queue = LocalDeliveryQueue()
        await queue.enqueue(1)
        await queue.drain()

    async def test_stop_cancels_scheduled_attempts(self):
        seen = []

        async def handler(delivery_id):
            seen.append(delivery_id)

        queue = LocalDeliveryQueue()
        queue.start(handler)
        await queue.enqueue(1, delay_seconds=60)
        await queue.stop()
        await asyncio.sleep(0)

        assert seen == []


class TestCloudTasksDeliveryQueue:
    async def test_schedules_task_with_delay(self):
        class FakeTasksClient:
            def __init__(self):
                self.calls = []

            async def create_task_async(self, payload, url, delay_seconds=0):
                self.calls.append((payload, url, delay_seconds))
                return "projects/p/locations/l/queues/q/tasks/1"

        tasks = FakeTasksClient()
        queue = CloudTasksDeliveryQueue("https://svc.example.com/workers/", client=tasks)

        await queue.enqueue(42, delay_seconds=5)

        assert tasks.calls == [
            ({"delivery_id": 42}, f"https://svc.example.com/workers{FORWARDING_WORKER_PATH}", 5)
        ]


class TestWebhookClient:
    async def test_success_returns_status_and_body(self):
        def respond(request):
            assert request.headers["User-Agent"]
            assert request.headers["X-Custom"] == "1"
            return httpx.Response(202, text="accepted")

        client = WebhookClient(timeout=1, transport=httpx.MockTransport(respond))
        response = await client.post_json("https://t.example.com", {"a": 1}, headers={"X-Custom": "1"})
        await client.close()

        assert response.status_code == 202
        assert response.body == "accepted"

    async def test_non_2xx_raises_with_truncated_body(self):
        client = WebhookClient(
            timeout=1,
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="x" * 5000)),
        )

        with pytest.raises(WebhookDeliveryError) as exc_info:
            await client.post_json("https://t.example.com", {})

        assert exc_info.value.status_code == 500
        assert len(exc_info.value.response_body) == RESPONSE_BODY_LIMIT

    async def test_timeout_raises(self):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = WebhookClient(timeout=1, transport=httpx.MockTransport(slow))

        with pytest.raises(WebhookDeliveryError) as exc_info:
            await client.post_json("https://t.example.com", {})

        assert exc_info.value.status_code is None
        assert "Timeout" in str(exc_info.value)
