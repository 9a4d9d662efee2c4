"""Appointment intake, routing to workspaces and forwarding to their webhooks."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any
from urllib.parse import urlsplit

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AppointmentNotFoundError,
    LeadNotFoundError,
    WebhookDeliveryError,
    WorkspaceConfigurationError,
    WorkspaceNotFoundError,
)
from app.core.phone import format_phone_for_display, try_normalize_phone
from app.domain.models.criteria import normalize_state, normalize_zip
from app.domain.models.rules import LeadCriteria
from app.domain.services.rule_cache import RuleCache
from app.domain.services.rule_matcher import match_routing
from app.domain.services.rule_service import RuleService
from app.infrastructure.webhook_client import RESPONSE_BODY_LIMIT, WebhookClient, webhook_client
from app.persistence.models.appointment import Appointment, AppointmentForwardStatus, RoutingMethod
from app.persistence.models.contact import Contact
from app.persistence.models.lead import Lead
from app.persistence.models.workspace import Workspace
from app.persistence.repositories.appointment_repository import AppointmentRepository
from app.persistence.repositories.contact_repository import ContactRepository
from app.persistence.repositories.lead_repository import LeadRepository
from app.persistence.repositories.workspace_repository import WorkspaceRepository

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() + "Z" if value else None


def build_appointment_payload(
    appointment: Appointment,
    workspace: Workspace,
    contact: Contact | None,
    lead: Lead | None,
    forwarded_at: datetime,
) -> dict[str, Any]:
    """JSON body POSTed to a workspace's outbound webhook."""
    phone = appointment.customer_phone
    return {
        "appointment_id": appointment.id,
        "appointment_date": _iso(appointment.appointment_date),
        "appointment_notes": appointment.appointment_notes,
        "estimated_value": float(appointment.estimated_value) if appointment.estimated_value is not None else None,
        "customer": {
            "name": appointment.customer_name,
            "phone": phone,
            "phone_display": format_phone_for_display(phone) if phone else None,
            "email": appointment.customer_email,
            "zip": appointment.customer_zip,
            "state": appointment.customer_state,
        },
        "service": {"type": appointment.service_type},
        "contact": {
            "id": contact.id,
            "first_name": contact.first_name,
            "last_name": contact.last_name,
            "email": contact.email,
            "phone": contact.phone,
        } if contact else None,
        "lead": {"id": lead.id, "source": lead.source} if lead else None,
        "workspace": {"id": workspace.id, "name": workspace.name},
        "routing": {
            "method": appointment.routing_method,
            "rule_id": appointment.routing_rule_id,
        },
        "forwarded_at": _iso(forwarded_at),
    }


def mask_webhook_url(url: str | None) -> str | None:
    """Keep only scheme and host of a webhook URL, e.g. ``https://crm.example.com/...``."""
    if not url:
        return None
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return "..."
    return f"{parts.scheme}://{parts.netloc}/..."


@dataclass
class AppointmentPage:
    """One page of an appointment listing plus the total matching count."""

    items: list[Appointment]
    total: int


@dataclass
class AppointmentHistoryItem:
    """Appointment with the routing and forwarding facts shown in its history."""

    appointment: Appointment
    workspace_name: str | None
    routing_status: str
    webhook_url_masked: str | None


class AppointmentService:
    """Stores appointments, decides which workspace owns them and forwards them.

    An explicit active workspace wins. Otherwise the routing rules of the
    lead's source decide, first match wins. No match is not an error: the
    appointment is stored as unrouted. A routed appointment is POSTed to the
    workspace's ``outbound_webhook_url`` when it has one; the outcome is
    recorded on the appointment and never fails the intake.
    """

    def __init__(
        self,
        session: AsyncSession,
        cache: RuleCache | None = None,
        client: WebhookClient | None = None,
    ) -> None:
        self.session = session
        self.appointment_repo = AppointmentRepository(session)
        self.lead_repo = LeadRepository(session)
        self.contact_repo = ContactRepository(session)
        self.workspace_repo = WorkspaceRepository(session)
        self.rule_service = RuleService(session, cache)
        self.client = client or webhook_client

    async def receive_appointment(
        self,
        appointment_date: datetime | None = None,
        workspace_id: int | None = None,
        lead_id: int | None = None,
        customer_name: str | None = None,
        customer_phone: str | None = None,
        customer_email: str | None = None,
        service_type: str | None = None,
        customer_zip: str | None = None,
        customer_state: str | None = None,
        appointment_notes: str | None = None,
        estimated_value: Decimal | None = None,
        raw_payload: dict[str, Any] | None = None,
    ) -> Appointment:
        """Create, route and forward an appointment.

        With ``lead_id`` the customer, product, zip and state come from the
        lead and the inline customer fields only fill gaps.

        Raises:
            LeadNotFoundError: If ``lead_id`` does not exist
        """
        contact_id = None
        scope = None
        if lead_id is not None:
            lead = await self.lead_repo.get_by_id(None, lead_id)
            if lead is None:
                raise LeadNotFoundError(lead_id)
            contact_id = lead.contact_id
            scope = lead.source_webhook_id
            lead_name = " ".join(part for part in (lead.first_name, lead.last_name) if part)
            customer_name = lead_name or customer_name
            customer_phone = lead.phone or customer_phone
            customer_email = lead.email or customer_email
            service_type = lead.product_type or service_type
            customer_zip = lead.zip_code or customer_zip
            customer_state = lead.state or customer_state

        customer_zip = normalize_zip(customer_zip)
        customer_state = normalize_state(customer_state)

        workspace = None
        matched_workspace_id = None
        routing_method = RoutingMethod.UNROUTED
        routing_rule_id = None

        if workspace_id is not None:
            workspace = await self.workspace_repo.get_active(workspace_id)
            if workspace is not None:
                matched_workspace_id = workspace_id
                routing_method = RoutingMethod.DIRECT
            else:
                logger.warning(
                    "Requested workspace not active, falling back to routing rules",
                    extra={"workspace_id": workspace_id},
                )

        if matched_workspace_id is None:
            rules = await self.rule_service.get_routing_snapshot(scope)
            match = match_routing(rules, LeadCriteria.from_values(service_type, customer_zip, customer_state))
            if match is not None:
                matched_workspace_id = match.rule.workspace_id
                workspace = await self.workspace_repo.get_active(matched_workspace_id)
                routing_method = RoutingMethod.AUTO
                routing_rule_id = match.rule.id

        appointment = await self.appointment_repo.create(
            None,
            lead_id=lead_id,
            contact_id=contact_id,
            source_webhook_id=scope,
            customer_name=customer_name,
            customer_phone=try_normalize_phone(customer_phone) or customer_phone,
            customer_email=customer_email,
            service_type=service_type,
            customer_zip=customer_zip,
            customer_state=customer_state,
            appointment_date=appointment_date,
            appointment_notes=appointment_notes,
            estimated_value=estimated_value,
            matched_workspace_id=matched_workspace_id,
            routing_method=routing_method,
            routing_rule_id=routing_rule_id,
            raw_payload=raw_payload,
        )
        logger.info(
            "Appointment received",
            extra={
                "appointment_id": appointment.id,
                "workspace_id": appointment.matched_workspace_id,
                "routing_method": routing_method,
            },
        )

        if workspace is not None and workspace.outbound_webhook_url:
            appointment = await self._forward(appointment, workspace)
        return appointment

    async def forward_appointment(self, appointment_id: int, workspace_id: int) -> Appointment:
        """Route an appointment to a workspace by hand and forward it there.

        Also used to retry a failed forward: the attempt counter keeps
        growing across calls.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            WorkspaceNotFoundError: If the workspace is missing or inactive
            WorkspaceConfigurationError: If the workspace has no outbound webhook
        """
        appointment = await self.appointment_repo.get_by_id(None, appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(appointment_id)
        workspace = await self.workspace_repo.get_active(workspace_id)
        if workspace is None:
            raise WorkspaceNotFoundError(workspace_id)
        if not workspace.outbound_webhook_url:
            raise WorkspaceConfigurationError(f"Workspace {workspace_id} has no outbound webhook URL")

        appointment = await self.appointment_repo.update(
            None,
            appointment.id,
            matched_workspace_id=workspace.id,
            routing_method=RoutingMethod.DIRECT,
            routing_rule_id=None,
        )
        logger.info(
            "Appointment rerouted",
            extra={"appointment_id": appointment.id, "workspace_id": workspace.id},
        )
        return await self._forward(appointment, workspace)

    async def _forward(self, appointment: Appointment, workspace: Workspace) -> Appointment:
        """POST the appointment to the workspace's webhook and record the outcome."""
        contact = None
        if appointment.contact_id is not None:
            contact = await self.contact_repo.get_by_id(None, appointment.contact_id)
        lead = None
        if appointment.lead_id is not None:
            lead = await self.lead_repo.get_by_id(None, appointment.lead_id)

        forwarded_at = datetime.utcnow()
        payload = build_appointment_payload(appointment, workspace, contact, lead, forwarded_at)
        attempts = appointment.forward_attempts + 1
        # End the read transaction before waiting on the network
        await self.session.commit()

        try:
            response = await self.client.post_json(
                workspace.outbound_webhook_url,
                payload,
                headers={
                    "X-Source": "appointment-routing",
                    "X-Appointment-Id": str(appointment.id),
                },
            )
        except WebhookDeliveryError as e:
            logger.warning(
                f"Appointment forward failed: {e}",
                extra={
                    "appointment_id": appointment.id,
                    "workspace_id": workspace.id,
                    "http_status_code": e.status_code,
                    "forward_attempts": attempts,
                },
            )
            return await self.appointment_repo.update(
                None,
                appointment.id,
                forward_status=AppointmentForwardStatus.FAILED,
                forward_response=(e.response_body or str(e))[:RESPONSE_BODY_LIMIT],
                forward_attempts=attempts,
            )

        logger.info(
            "Appointment forwarded",
            extra={
                "appointment_id": appointment.id,
                "workspace_id": workspace.id,
                "http_status_code": response.status_code,
                "forward_attempts": attempts,
            },
        )
        return await self.appointment_repo.update(
            None,
            appointment.id,
            forward_status=AppointmentForwardStatus.SUCCESS,
            forward_response=response.body,
            forward_attempts=attempts,
            forwarded_at=forwarded_at,
        )

    async def list_appointments(
        self,
        workspace_id: int | None = None,
        service_type: str | None = None,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        skip: int = 0,
        limit: int = 100,
    ) -> AppointmentPage:
        filters = dict(
            workspace_id=workspace_id, service_type=service_type, from_date=from_date, to_date=to_date
        )
        items = await self.appointment_repo.search(**filters, skip=skip, limit=limit)
        total = await self.appointment_repo.count(**filters)
        return AppointmentPage(items=items, total=total)

    async def appointment_history(self, skip: int = 0, limit: int = 50) -> list[AppointmentHistoryItem]:
        """Routing and forwarding history, newest first.

        The workspace webhook URL is masked down to its host.
        """
        rows = await self.appointment_repo.history(skip=skip, limit=limit)
        return [
            AppointmentHistoryItem(
                appointment=appointment,
                workspace_name=workspace.name if workspace else None,
                routing_status="routed" if appointment.matched_workspace_id else "unrouted",
                webhook_url_masked=mask_webhook_url(workspace.outbound_webhook_url) if workspace else None,
            )
            for appointment, workspace in rows
        ]
