"""Forwarding worker invoked by Cloud Tasks for one delivery attempt."""

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from app.api.deps import get_delivery_queue
from app.domain.services.forwarding_dispatcher import ForwardingDispatcher
from app.infrastructure.delivery_queue import DeliveryQueue

logger = logging.getLogger(__name__)

router = APIRouter()


class ForwardingTaskPayload(BaseModel):
    """Payload for a forwarding attempt task."""

    delivery_id: int


def get_dispatcher(
    queue: Annotated[DeliveryQueue, Depends(get_delivery_queue)],
) -> ForwardingDispatcher:
    return ForwardingDispatcher(queue)


@router.post("/forwarding/deliver")
async def deliver_forwarding_task(
    request: Request,
    payload: ForwardingTaskPayload,
    dispatcher: Annotated[ForwardingDispatcher, Depends(get_dispatcher)],
) -> dict[str, Any]:
    """Run one attempt of a forwarding delivery.

    Outcomes, including failures of the target webhook, are recorded in the
    forwarding log and answered with 200; retries are scheduled by the
    dispatcher itself. An unexpected error returns 500; the dispatcher has
    already put the delivery back to pending, so a redelivered task either
    runs the next attempt once it is due or finds nothing to do.
    """
    task_name = request.headers.get("X-CloudTasks-TaskName")
    try:
        entry = await dispatcher.dispatch(payload.delivery_id)
    except Exception as e:
        logger.error(
            f"Error processing forwarding task: {e}",
            exc_info=True,
            extra={"delivery_id": payload.delivery_id, "task_name": task_name},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Forwarding attempt failed: {str(e)}",
        )

    if entry is None:
        return {"status": "noop", "delivery_id": payload.delivery_id}
    return {
        "status": entry.forward_status,
        "delivery_id": payload.delivery_id,
        "log_entry_id": entry.id,
        "retry_count": entry.retry_count,
    }
