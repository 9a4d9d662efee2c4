"""Lead ingestion: resolve the contact, store the lead, route it and queue forwarding."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import SourceNotFoundError
from app.core.scope_context import set_scope_context
from app.domain.models.criteria import normalize_state, normalize_zip
from app.domain.models.lead_submission import LeadSubmission
from app.domain.models.rules import LeadCriteria
from app.domain.services.contact_resolver import ContactResolver
from app.domain.services.rule_cache import RuleCache
from app.domain.services.rule_matcher import match_forwarding, match_routing
from app.domain.services.rule_service import RuleService
from app.infrastructure.delivery_queue import DeliveryQueue
from app.persistence.models.contact import Contact
from app.persistence.models.forwarding import DeliveryStatus
from app.persistence.models.lead import Lead
from app.persistence.repositories.forwarding_repository import ForwardingDeliveryRepository
from app.persistence.repositories.lead_repository import LeadRepository
from app.persistence.repositories.source_repository import WebhookSourceRepository

logger = logging.getLogger(__name__)


@dataclass
class IngestionResult:
    """What happened to one inbound lead."""

    lead: Lead
    contact: Contact
    is_new_contact: bool
    workspace_id: int | None = None
    routing_rule_id: int | None = None
    delivery_ids: list[int] = field(default_factory=list)


class LeadIngestionService:
    """Wires the resolver, the matcher and the delivery queue for one request.

    The contact, the lead and one pending delivery per matched forwarding
    target are committed in a single transaction. Deliveries are handed to the
    queue only after the commit, so an HTTP failure downstream can never undo
    the lead.
    """

    def __init__(
        self,
        session: AsyncSession,
        queue: DeliveryQueue,
        cache: RuleCache | None = None,
        invalid_phone_policy: str | None = None,
    ) -> None:
        self.session = session
        self.queue = queue
        self.source_repo = WebhookSourceRepository(session)
        self.lead_repo = LeadRepository(session)
        self.delivery_repo = ForwardingDeliveryRepository(session)
        self.rule_service = RuleService(session, cache)
        self.resolver = ContactResolver(session, invalid_phone_policy)

    async def ingest(self, webhook_id: str, submission: LeadSubmission) -> IngestionResult:
        """Ingest one lead.

        Raises:
            SourceNotFoundError: If the source is unknown, inactive or deleted
            InvalidPhoneError: If the phone is malformed and the policy rejects it
        """
        source = await self.source_repo.get_by_webhook_id(webhook_id, active_only=True)
        if source is None:
            raise SourceNotFoundError(webhook_id)
        set_scope_context(webhook_id)

        zip_code = normalize_zip(submission.zip_code)
        state = normalize_state(submission.state)
        criteria = LeadCriteria.from_values(submission.product_type, zip_code, state)

        # Snapshots are read before the first write of the transaction
        routing_rules = await self.rule_service.get_routing_snapshot(webhook_id)
        forwarding_rules = await self.rule_service.get_forwarding_snapshot(webhook_id)

        try:
            contact, is_new = await self.resolver.resolve(
                webhook_id,
                submission.phone,
                {
                    "first_name": submission.first_name,
                    "last_name": submission.last_name,
                    "email": submission.email,
                    "address": submission.address,
                    "city": submission.city,
                    "state": state,
                    "zip_code": zip_code,
                },
            )

            routing = match_routing(routing_rules, criteria)
            lead = await self.lead_repo.create(
                webhook_id,
                commit=False,
                contact_id=contact.id,
                first_name=submission.first_name,
                last_name=submission.last_name,
                email=submission.email,
                phone=contact.phone,
                product_type=criteria.product_type,
                zip_code=zip_code,
                state=state,
                source=submission.source,
                workspace_id=routing.rule.workspace_id if routing else None,
                routing_rule_id=routing.rule.id if routing else None,
                raw_payload=submission.raw_payload,
            )

            deliveries = []
            for match in match_forwarding(forwarding_rules, criteria):
                deliveries.append(
                    await self.delivery_repo.create(
                        webhook_id,
                        commit=False,
                        lead_id=lead.id,
                        contact_id=contact.id,
                        rule_id=match.rule.id,
                        target_webhook_id=match.rule.target_webhook_id,
                        target_webhook_url=match.rule.target_webhook_url,
                        status=DeliveryStatus.PENDING,
                        next_attempt_at=datetime.utcnow(),
                        matched_product=match.product,
                        matched_zip=match.zip,
                        matched_state=match.state,
                    )
                )

            await self.source_repo.record_lead_received(webhook_id, datetime.utcnow())
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Lead ingested",
            extra={
                "lead_id": lead.id,
                "contact_id": contact.id,
                "contact_status": "new" if is_new else "existing",
                "workspace_id": lead.workspace_id,
                "deliveries": len(deliveries),
            },
        )

        delivery_ids = [delivery.id for delivery in deliveries]
        for delivery_id in delivery_ids:
            try:
                await self.queue.enqueue(delivery_id)
            except Exception:
                # Row stays pending and is re-enqueued by the recovery pass
                logger.exception("Failed to enqueue delivery", extra={"delivery_id": delivery_id})

        return IngestionResult(
            lead=lead,
            contact=contact,
            is_new_contact=is_new,
            workspace_id=lead.workspace_id,
            routing_rule_id=lead.routing_rule_id,
            delivery_ids=delivery_ids,
        )
