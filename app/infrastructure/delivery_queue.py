"""Delay queues that hand forwarding deliveries to the dispatcher.

Two implementations share the ``enqueue(delivery_id, delay_seconds)`` shape:

* ``LocalDeliveryQueue`` runs attempts as asyncio tasks inside this process.
* ``CloudTasksDeliveryQueue`` schedules each attempt as a Cloud Task that
  calls the forwarding worker endpoint.

Either way the delivery row in the database is the source of truth; a queue
entry that is lost only delays the delivery until the next recovery pass.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from app.infrastructure.cloud_tasks import CloudTasksClient
from app.settings import settings

logger = logging.getLogger(__name__)

DeliveryHandler = Callable[[int], Awaitable[object]]

FORWARDING_WORKER_PATH = "/forwarding/deliver"


class DeliveryQueue(Protocol):
    """Anything that can schedule a delivery attempt."""

    def start(self, handler: DeliveryHandler) -> None: ...

    async def enqueue(self, delivery_id: int, delay_seconds: float = 0) -> None: ...

    async def stop(self) -> None: ...


class LocalDeliveryQueue:
    """In-process delay queue on asyncio tasks.

    Args:
        max_concurrency: Upper bound on attempts running at the same time
    """

    def __init__(self, max_concurrency: int | None = None) -> None:
        self._handler: DeliveryHandler | None = None
        self._semaphore = asyncio.Semaphore(max_concurrency or settings.forwarding_max_concurrency)
        self._tasks: set[asyncio.Task] = set()

    def start(self, handler: DeliveryHandler) -> None:
        self._handler = handler

    async def enqueue(self, delivery_id: int, delay_seconds: float = 0) -> None:
        if self._handler is None:
            logger.warning(
                "Delivery queue not started, delivery left pending",
                extra={"delivery_id": delivery_id},
            )
            return
        task = asyncio.create_task(self._run(delivery_id, delay_seconds))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, delivery_id: int, delay_seconds: float) -> None:
        if delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        async with self._semaphore:
            try:
                await self._handler(delivery_id)
            except Exception:
                # Delivery stays pending or in_flight and is picked up on recovery
                logger.exception("Delivery attempt crashed", extra={"delivery_id": delivery_id})

    async def drain(self) -> None:
        """Wait until no attempts are scheduled, including retries they enqueue."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
        self._handler = None


class CloudTasksDeliveryQueue:
    """Delay queue backed by Google Cloud Tasks.

    Args:
        worker_base_url: Base URL of the workers router, e.g. https://svc/workers
        client: Optional Cloud Tasks client
    """

    def __init__(self, worker_base_url: str, client: CloudTasksClient | None = None) -> None:
        self.worker_url = f"{worker_base_url.rstrip('/')}{FORWARDING_WORKER_PATH}"
        self._client = client

    def start(self, handler: DeliveryHandler) -> None:
        # Attempts run in the worker endpoint, not in this process
        pass

    async def enqueue(self, delivery_id: int, delay_seconds: float = 0) -> None:
        if self._client is None:
            self._client = CloudTasksClient()
        task_name = await self._client.create_task_async(
            payload={"delivery_id": delivery_id},
            url=self.worker_url,
            delay_seconds=delay_seconds,
        )
        logger.info(
            "Forwarding attempt scheduled",
            extra={"delivery_id": delivery_id, "delay_seconds": delay_seconds, "task_name": task_name},
        )

    async def stop(self) -> None:
        pass


_delivery_queue: DeliveryQueue | None = None


def get_delivery_queue() -> DeliveryQueue:
    """Process-wide delivery queue, Cloud Tasks when a worker URL is configured."""
    global _delivery_queue
    if _delivery_queue is None:
        if settings.cloud_tasks_forwarding_worker_url:
            _delivery_queue = CloudTasksDeliveryQueue(settings.cloud_tasks_forwarding_worker_url)
        else:
            _delivery_queue = LocalDeliveryQueue()
    return _delivery_queue
