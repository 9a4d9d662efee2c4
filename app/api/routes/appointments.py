"""Appointment intake, listing and forwarding endpoints."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_webhook_client, require_admin
from app.api.schemas.appointment import (
    AppointmentForwardRequest,
    AppointmentHistoryEntry,
    AppointmentHistoryResponse,
    AppointmentListResponse,
    AppointmentReceive,
    AppointmentResponse,
)
from app.core.exceptions import (
    AppointmentNotFoundError,
    LeadNotFoundError,
    WorkspaceConfigurationError,
    WorkspaceNotFoundError,
)
from app.domain.services.appointment_service import AppointmentService
from app.infrastructure.webhook_client import WebhookClient
from app.persistence.database import get_db

router = APIRouter(dependencies=[Depends(require_admin)])


def get_appointment_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    client: Annotated[WebhookClient, Depends(get_webhook_client)],
) -> AppointmentService:
    return AppointmentService(db, client=client)


@router.post("/receive", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def receive_appointment(
    appointment_data: AppointmentReceive,
    service: Annotated[AppointmentService, Depends(get_appointment_service)],
) -> AppointmentResponse:
    """Store an appointment, route it to a workspace and forward it there.

    ``routing_method`` is ``direct`` for an explicit active workspace,
    ``auto`` when a routing rule matched and ``unrouted`` otherwise.
    ``forward_status`` stays null when the workspace has no outbound webhook;
    a failed forward is recorded, not raised.
    """
    fields = appointment_data.model_dump(exclude=set(appointment_data.model_extra or {}))
    try:
        appointment = await service.receive_appointment(
            **fields,
            raw_payload=appointment_data.model_dump(mode="json"),
        )
    except LeadNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return AppointmentResponse.model_validate(appointment)


@router.get("", response_model=AppointmentListResponse)
async def list_appointments(
    service: Annotated[AppointmentService, Depends(get_appointment_service)],
    workspace_id: int | None = Query(None),
    service_type: str | None = Query(None),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
) -> AppointmentListResponse:
    """Appointments newest first, filtered by workspace, service and appointment date."""
    page = await service.list_appointments(
        workspace_id=workspace_id,
        service_type=service_type,
        from_date=from_date,
        to_date=to_date,
        skip=skip,
        limit=limit,
    )
    return AppointmentListResponse(
        total=page.total,
        skip=skip,
        limit=limit,
        appointments=[AppointmentResponse.model_validate(item) for item in page.items],
    )


@router.get("/history", response_model=AppointmentHistoryResponse)
async def appointment_history(
    service: Annotated[AppointmentService, Depends(get_appointment_service)],
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
) -> AppointmentHistoryResponse:
    items = await service.appointment_history(skip=skip, limit=limit)
    return AppointmentHistoryResponse(
        skip=skip,
        limit=limit,
        appointments=[
            AppointmentHistoryEntry(
                id=item.appointment.id,
                customer_name=item.appointment.customer_name,
                service_type=item.appointment.service_type,
                customer_zip=item.appointment.customer_zip,
                matched_workspace_id=item.appointment.matched_workspace_id,
                workspace_name=item.workspace_name,
                routing_method=item.appointment.routing_method,
                routing_status=item.routing_status,
                forward_status=item.appointment.forward_status,
                forward_attempts=item.appointment.forward_attempts,
                forward_response=item.appointment.forward_response,
                forwarded_at=item.appointment.forwarded_at,
                webhook_url_masked=item.webhook_url_masked,
                created_at=item.appointment.created_at,
            )
            for item in items
        ],
    )


@router.post("/{appointment_id}/forward", response_model=AppointmentResponse)
async def forward_appointment(
    appointment_id: int,
    request_data: AppointmentForwardRequest,
    service: Annotated[AppointmentService, Depends(get_appointment_service)],
) -> AppointmentResponse:
    """Reroute an appointment to a workspace and forward it immediately.

    The response carries the forward outcome; a failed POST is a 200 with
    ``forward_status`` ``failed`` and may be retried with the same call.
    """
    try:
        appointment = await service.forward_appointment(appointment_id, request_data.workspace_id)
    except (AppointmentNotFoundError, WorkspaceNotFoundError) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except WorkspaceConfigurationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return AppointmentResponse.model_validate(appointment)
