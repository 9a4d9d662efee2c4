"""Forwarding dispatcher: performs one delivery attempt and records its outcome.

Each call handles exactly one attempt of one delivery and writes exactly one
forwarding log entry. Retries are new attempts scheduled on the delivery
queue, so a crash between attempts loses nothing: the delivery row is still
pending with its ``next_attempt_at``.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import WebhookDeliveryError
from app.core.scope_context import clear_scope_context, set_scope_context
from app.infrastructure.delivery_queue import DeliveryQueue
from app.infrastructure.webhook_client import RESPONSE_BODY_LIMIT, WebhookClient, webhook_client
from app.persistence.database import AsyncSessionLocal
from app.persistence.models.contact import Contact
from app.persistence.models.forwarding import (
    DeliveryStatus,
    ForwardingDelivery,
    ForwardingLogEntry,
    ForwardStatus,
)
from app.persistence.models.lead import Lead
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.forwarding_repository import (
    ForwardingDeliveryRepository,
    ForwardingLogRepository,
)
from app.persistence.repositories.lead_repository import LeadRepository
from app.persistence.repositories.rule_repository import ForwardingRuleRepository
from app.persistence.repositories.source_repository import WebhookSourceRepository
from app.settings import settings

logger = logging.getLogger(__name__)


def build_forwarding_payload(
    delivery: ForwardingDelivery,
    lead: Lead,
    contact: Contact,
    forwarded_at: datetime,
) -> dict[str, Any]:
    """Normalized JSON body sent to a forwarding target.

    The shape is independent of how the lead was originally submitted; the
    original body travels along untouched under ``original_payload``.
    """
    return {
        "lead": {
            "id": lead.id,
            "first_name": lead.first_name,
            "last_name": lead.last_name,
            "email": lead.email,
            "phone": lead.phone,
            "product_type": lead.product_type,
            "zip_code": lead.zip_code,
            "state": lead.state,
            "source": lead.source,
            "status": lead.status,
            "created_at": lead.created_at.isoformat() if lead.created_at else None,
        },
        "contact": {
            "id": contact.id,
            "phone": contact.phone,
            "email": contact.email,
            "first_name": contact.first_name,
            "last_name": contact.last_name,
        },
        "match": {
            "rule_id": delivery.rule_id,
            "product": delivery.matched_product,
            "zip": delivery.matched_zip,
            "state": delivery.matched_state,
        },
        "forwarded_from": delivery.source_webhook_id,
        "target_webhook_id": delivery.target_webhook_id,
        "forwarded_at": forwarded_at.isoformat() + "Z",
        "original_payload": lead.raw_payload or {},
    }


def forwarding_headers(delivery: ForwardingDelivery) -> dict[str, str]:
    return {
        "X-Forwarded-From": delivery.source_webhook_id,
        "X-Original-Lead-Id": str(delivery.lead_id),
        "X-Original-Contact-Id": str(delivery.contact_id or ""),
        "X-Forwarding-Rule-Id": str(delivery.rule_id),
    }


class ForwardingDispatcher:
    """Runs delivery attempts, each in its own database session.

    Args:
        queue: Delay queue used to schedule retries
        session_factory: Callable returning a new AsyncSession
        client: Outbound webhook client
        max_retries: Attempts allowed after the first one
        backoff_seconds: Delay before retry n is ``backoff_seconds[n]``,
            the last value repeating
    """

    def __init__(
        self,
        queue: DeliveryQueue,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
        client: WebhookClient | None = None,
        max_retries: int | None = None,
        backoff_seconds: list[float] | None = None,
    ) -> None:
        self.queue = queue
        self.session_factory = session_factory
        self.client = client or webhook_client
        self.max_retries = settings.forwarding_max_retries if max_retries is None else max_retries
        self.backoff_seconds = backoff_seconds or settings.forwarding_retry_backoff_seconds

    def backoff_for(self, retry_count: int) -> float:
        """Delay before the attempt that follows attempt number ``retry_count``."""
        return self.backoff_seconds[min(retry_count, len(self.backoff_seconds) - 1)]

    async def dispatch(self, delivery_id: int) -> ForwardingLogEntry | None:
        """Attempt one delivery.

        Returns:
            The log entry written for this attempt, or None when the delivery
            was not pending (already claimed, finished or removed)
        """
        async with self.session_factory() as session:
            try:
                return await self._attempt(session, delivery_id)
            finally:
                clear_scope_context()

    async def _attempt(self, session: AsyncSession, delivery_id: int) -> ForwardingLogEntry | None:
        deliveries = ForwardingDeliveryRepository(session)
        # Small grace so a timer that fires marginally early still claims
        if not await deliveries.claim(delivery_id, due_before=datetime.utcnow() + timedelta(seconds=1)):
            logger.info("Delivery not pending, nothing to do", extra={"delivery_id": delivery_id})
            return None

        try:
            return await self._run_claimed(session, delivery_id)
        except Exception as e:
            # The claim is ours, so the delivery must not stay in_flight
            await session.rollback()
            await self._release_after_error(delivery_id, e)
            raise

    async def _run_claimed(self, session: AsyncSession, delivery_id: int) -> ForwardingLogEntry:
        delivery = await ForwardingDeliveryRepository(session).get_by_id(None, delivery_id)
        scope = delivery.source_webhook_id
        set_scope_context(scope)
        retry_count = delivery.attempt_count

        # Toggle and rule are read at attempt time, never at match time
        if not await WebhookSourceRepository(session).is_forwarding_enabled(scope):
            return await self._finish(
                session, delivery, ForwardStatus.SKIPPED, retry_count,
                error_message="Forwarding disabled for source",
            )

        lead = await LeadRepository(session).get_by_id(None, delivery.lead_id)
        if lead is None:
            return await self._finish(
                session, delivery, ForwardStatus.FAILED, retry_count,
                error_message=f"Lead {delivery.lead_id} no longer exists",
            )
        contact = None
        if delivery.contact_id is not None:
            contact = await ContactRepository(session).get_by_id(None, delivery.contact_id)
        if contact is None:
            return await self._finish(
                session, delivery, ForwardStatus.FAILED, retry_count,
                error_message=f"Contact {delivery.contact_id} no longer exists",
            )

        rule = await ForwardingRuleRepository(session).get_by_id(scope, delivery.rule_id)
        if rule is None or not rule.is_active or not rule.forward_enabled:
            reason = "deleted" if rule is None else "inactive" if not rule.is_active else "disabled"
            return await self._finish(
                session, delivery, ForwardStatus.SKIPPED, retry_count,
                error_message=f"Forwarding rule {delivery.rule_id} {reason}",
            )

        forwarded_at = datetime.utcnow()
        payload = build_forwarding_payload(delivery, lead, contact, forwarded_at)
        # End the read transaction before waiting on the network
        await session.commit()

        try:
            response = await self.client.post_json(
                delivery.target_webhook_url, payload, headers=forwarding_headers(delivery)
            )
        except WebhookDeliveryError as e:
            if retry_count < self.max_retries:
                delay = self.backoff_for(retry_count)
                entry = await self._finish(
                    session, delivery, ForwardStatus.RETRY, retry_count,
                    payload=payload,
                    http_status_code=e.status_code,
                    response_body=e.response_body,
                    error_message=str(e),
                    retry_in=delay,
                )
                await self.queue.enqueue(delivery.id, delay)
                return entry
            return await self._finish(
                session, delivery, ForwardStatus.FAILED, retry_count,
                payload=payload,
                http_status_code=e.status_code,
                response_body=e.response_body,
                error_message=f"{e} (gave up after {retry_count + 1} attempts)",
            )

        await ForwardingRuleRepository(session).record_success(rule.id, forwarded_at)
        await WebhookSourceRepository(session).record_forward_success(scope, forwarded_at)
        return await self._finish(
            session, delivery, ForwardStatus.SUCCESS, retry_count,
            payload=payload,
            http_status_code=response.status_code,
            response_body=response.body,
        )

    async def _finish(
        self,
        session: AsyncSession,
        delivery: ForwardingDelivery,
        status: str,
        retry_count: int,
        payload: dict[str, Any] | None = None,
        http_status_code: int | None = None,
        response_body: str | None = None,
        error_message: str | None = None,
        retry_in: float | None = None,
    ) -> ForwardingLogEntry:
        """Write the attempt's log entry and move the delivery to its next state."""
        now = datetime.utcnow()
        entry = ForwardingLogEntry(
            delivery_id=delivery.id,
            lead_id=delivery.lead_id,
            contact_id=delivery.contact_id,
            rule_id=delivery.rule_id,
            source_webhook_id=delivery.source_webhook_id,
            target_webhook_id=delivery.target_webhook_id,
            target_webhook_url=delivery.target_webhook_url,
            forwarded_at=now,
            forward_status=status,
            http_status_code=http_status_code,
            response_body=response_body[:RESPONSE_BODY_LIMIT] if response_body else None,
            error_message=error_message,
            retry_count=retry_count,
            matched_product=delivery.matched_product,
            matched_zip=delivery.matched_zip,
            matched_state=delivery.matched_state,
            payload=payload,
        )
        session.add(entry)

        delivery.attempt_count = retry_count + 1
        if payload is not None:
            delivery.payload = payload
        if status == ForwardStatus.RETRY:
            delivery.status = DeliveryStatus.PENDING
            delivery.next_attempt_at = now + timedelta(seconds=retry_in or 0)
        else:
            delivery.status = {
                ForwardStatus.SUCCESS: DeliveryStatus.SUCCESS,
                ForwardStatus.SKIPPED: DeliveryStatus.SKIPPED,
            }.get(status, DeliveryStatus.FAILED)
            delivery.next_attempt_at = None
            delivery.completed_at = now

        await session.commit()
        await session.refresh(entry)

        log = logger.warning if status in (ForwardStatus.FAILED, ForwardStatus.RETRY) else logger.info
        log(
            f"Forwarding attempt {status}",
            extra={
                "delivery_id": delivery.id,
                "lead_id": delivery.lead_id,
                "rule_id": delivery.rule_id,
                "target_webhook_id": delivery.target_webhook_id,
                "retry_count": retry_count,
                "http_status_code": http_status_code,
                "error_message": error_message,
            },
        )
        return entry

    async def _release_after_error(self, delivery_id: int, error: Exception) -> None:
        """Log an unexpected failure of a claimed attempt and reschedule it.

        Uses a fresh session because the attempt's session may be unusable.
        If this bookkeeping fails as well the delivery stays in_flight until
        ``recover()`` releases it.
        """
        message = f"Unexpected error: {type(error).__name__}: {error}"
        try:
            async with self.session_factory() as session:
                delivery = await ForwardingDeliveryRepository(session).get_by_id(None, delivery_id)
                if delivery is None or delivery.status != DeliveryStatus.IN_FLIGHT:
                    return
                retry_count = delivery.attempt_count
                if retry_count < self.max_retries:
                    delay = self.backoff_for(retry_count)
                    await self._finish(
                        session, delivery, ForwardStatus.RETRY, retry_count,
                        error_message=message,
                        retry_in=delay,
                    )
                    await self.queue.enqueue(delivery_id, delay)
                else:
                    await self._finish(
                        session, delivery, ForwardStatus.FAILED, retry_count,
                        error_message=f"{message} (gave up after {retry_count + 1} attempts)",
                    )
        except Exception:
            logger.exception(
                "Could not release delivery after unexpected error",
                extra={"delivery_id": delivery_id},
            )

    async def recover(self, stale_after_seconds: float | None = None) -> int:
        """Re-enqueue every pending delivery, e.g. after a restart.

        In-flight deliveries claimed longer ago than ``stale_after_seconds``
        (default: twice the request timeout) are returned to pending first.

        Returns:
            Number of deliveries enqueued
        """
        if stale_after_seconds is None:
            stale_after_seconds = settings.forwarding_timeout_seconds * 2
        now = datetime.utcnow()
        async with self.session_factory() as session:
            repo = ForwardingDeliveryRepository(session)
            released = await repo.release_in_flight(now - timedelta(seconds=stale_after_seconds))
            pending = await repo.list_pending()

        for delivery in pending:
            delay = 0.0
            if delivery.next_attempt_at is not None:
                delay = max(0.0, (delivery.next_attempt_at - now).total_seconds())
            await self.queue.enqueue(delivery.id, delay)

        if pending or released:
            logger.info(
                "Recovered pending deliveries",
                extra={"enqueued": len(pending), "released_in_flight": released},
            )
        return len(pending)
