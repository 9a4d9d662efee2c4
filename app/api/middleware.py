"""Middleware for request IDs and idempotency."""

import json
import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.idempotency import generate_idempotency_key, idempotency_cache_key
from app.infrastructure.redis import redis_client
from app.settings import settings

REQUEST_ID_HEADER = "X-Request-ID"

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def get_current_request_id() -> str | None:
    """Request ID of the request being handled, if any."""
    return _request_id_var.get()


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request ID to the logging context and the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        token = _request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            _request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def is_lead_intake(method: str, path: str) -> bool:
    """True for ``POST /webhook/{webhook_id}``, the provider-facing lead endpoint."""
    parts = path.strip("/").split("/")
    return method == "POST" and len(parts) == 2 and parts[0] == "webhook"


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """Replay cached responses for repeated mutating requests.

    Any mutating request may carry an ``Idempotency-Key`` header. Lead intake
    without one is keyed by a hash of method, path and JSON body, so a
    provider resending the same lead gets the original answer. Only 2xx
    responses are cached, and only when Redis is enabled.
    """

    async def dispatch(
        self, request: Request, call_next: Callable
    ) -> Response:
        """Process request with idempotency check.

        Args:
            request: FastAPI request
            call_next: Next middleware/handler

        Returns:
            Response (cached if idempotent, or new)
        """
        if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
            return await call_next(request)

        # Cloud Tasks redeliveries must reach the worker
        path = str(request.url.path)
        if path.startswith("/workers/") or not redis_client.enabled:
            return await call_next(request)

        idempotency_key = request.headers.get("Idempotency-Key")

        if not idempotency_key:
            # Admin writes such as the forwarding toggle are legitimately
            # repeated with the same body, so only lead intake is deduplicated
            # by content
            if not is_lead_intake(request.method, path):
                return await call_next(request)
            body = await request.body()
            try:
                body_dict = json.loads(body) if body else {}
            except (json.JSONDecodeError, UnicodeDecodeError):
                body_dict = {}
            if not isinstance(body_dict, dict):
                body_dict = {"_body": body_dict}
            idempotency_key = generate_idempotency_key(request.method, path, body_dict)

        cache_key = idempotency_cache_key(idempotency_key)
        cached_response = await redis_client.get_json(cache_key)

        if cached_response:
            return JSONResponse(
                content=cached_response["body"],
                status_code=cached_response["status_code"],
                headers={"Idempotent-Replay": "true"},
            )

        response = await call_next(request)

        if 200 <= response.status_code < 300:
            response_body = b""
            async for chunk in response.body_iterator:
                response_body += chunk

            try:
                body_content = json.loads(response_body.decode()) if response_body else None
            except (json.JSONDecodeError, UnicodeDecodeError):
                body_content = response_body.decode(errors="replace")

            await redis_client.set_json(
                cache_key,
                {"body": body_content, "status_code": response.status_code},
                ttl=settings.idempotency_ttl_seconds,
            )

            headers = {k: v for k, v in response.headers.items() if k.lower() != "content-length"}
            return Response(
                content=response_body,
                status_code=response.status_code,
                headers=headers,
                media_type=response.media_type,
            )

        return response
