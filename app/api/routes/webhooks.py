"""Public lead webhook endpoints."""

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_delivery_queue, scope_from_path
from app.api.schemas.webhook import LeadIngestResponse, LeadWebhookPayload, SourceHealthResponse
from app.core.exceptions import ContactResolutionError, SourceNotFoundError
from app.core.phone import InvalidPhoneError
from app.domain.models.lead_submission import LeadSubmission
from app.domain.services.lead_ingestion_service import LeadIngestionService
from app.infrastructure.delivery_queue import DeliveryQueue
from app.persistence.database import get_db
from app.persistence.repositories.source_repository import WebhookSourceRepository

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{webhook_id}", response_model=LeadIngestResponse, status_code=status.HTTP_201_CREATED)
async def receive_lead(
    request: Request,
    payload: LeadWebhookPayload,
    webhook_id: Annotated[str, Depends(scope_from_path)],
    db: Annotated[AsyncSession, Depends(get_db)],
    queue: Annotated[DeliveryQueue, Depends(get_delivery_queue)],
) -> LeadIngestResponse:
    """Receive a lead from a provider.

    The lead is deduplicated into a contact by phone within this source,
    routed to a workspace and queued for forwarding. Forwarding happens after
    the response is sent.
    """
    raw_payload = await request.json()
    submission = LeadSubmission(
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        source=payload.source,
        phone=payload.phone,
        product_type=payload.product_type,
        zip_code=payload.zip_code,
        state=payload.state,
        address=payload.address,
        city=payload.city,
        raw_payload=raw_payload if isinstance(raw_payload, dict) else {},
    )

    service = LeadIngestionService(db, queue)
    try:
        result = await service.ingest(webhook_id, submission)
    except SourceNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except InvalidPhoneError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=[{"loc": ["body", "phone"], "msg": str(e), "type": "value_error.phone"}],
        )
    except ContactResolutionError as e:
        logger.warning(
            f"Contact resolution failed: {e}",
            extra={"webhook_id": webhook_id, "retryable": e.retryable},
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT if e.retryable else status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    return LeadIngestResponse(
        contact_id=result.contact.id,
        lead_id=result.lead.id,
        contact_status="new" if result.is_new_contact else "existing",
        workspace_id=result.workspace_id,
        forwarding_queued=len(result.delivery_ids),
    )


@router.get("/{webhook_id}", response_model=SourceHealthResponse)
async def source_health(
    webhook_id: Annotated[str, Depends(scope_from_path)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> SourceHealthResponse:
    """Report whether a source accepts leads, plus its basic counters."""
    source = await WebhookSourceRepository(db).get_by_webhook_id(webhook_id, active_only=True)
    if source is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(SourceNotFoundError(webhook_id)),
        )
    return SourceHealthResponse(
        status="active",
        webhook_id=source.webhook_id,
        name=source.name,
        lead_type=source.lead_type,
        forwarding_enabled=source.forwarding_enabled,
        total_leads=source.total_leads,
        last_lead_at=source.last_lead_at,
        timestamp=datetime.utcnow(),
    )
