"""Outbound webhook HTTP client used by the forwarding dispatcher."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from app.core.exceptions import WebhookDeliveryError
from app.settings import settings

logger = logging.getLogger(__name__)

RESPONSE_BODY_LIMIT = 1000


@dataclass(frozen=True)
class WebhookResponse:
    """Outcome of a successful (2xx) webhook POST."""

    status_code: int
    body: str


class WebhookClient:
    """POSTs JSON to external webhooks with a bounded timeout.

    Args:
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``)
    """

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout if timeout is not None else settings.forwarding_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> WebhookResponse:
        """POST a JSON payload.

        Raises:
            WebhookDeliveryError: On a non-2xx response, timeout or connection error
        """
        request_headers = {
            "Content-Type": "application/json",
            "User-Agent": settings.forwarding_user_agent,
            **(headers or {}),
        }
        try:
            response = await self._get_client().post(url, json=payload, headers=request_headers)
        except httpx.TimeoutException as e:
            raise WebhookDeliveryError(f"Timeout after {self.timeout}s: {e}") from e
        except httpx.HTTPError as e:
            raise WebhookDeliveryError(f"Request failed: {e}") from e

        body = response.text[:RESPONSE_BODY_LIMIT]
        if not response.is_success:
            raise WebhookDeliveryError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                response_body=body,
            )
        return WebhookResponse(status_code=response.status_code, body=body)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Shared client for the process
webhook_client = WebhookClient()
