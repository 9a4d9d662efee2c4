"""FastAPI dependencies for auth, scope context, the delivery queue and the webhook client."""

from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.auth import decode_access_token, is_admin_claims
from app.core.scope_context import set_scope_context
from app.infrastructure.delivery_queue import DeliveryQueue, get_delivery_queue as _get_delivery_queue
from app.infrastructure.webhook_client import WebhookClient, webhook_client

security = HTTPBearer()


async def get_current_claims(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> dict[str, Any]:
    """Verify the bearer token issued by the auth service.

    Args:
        credentials: HTTP bearer credentials

    Returns:
        Decoded token claims

    Raises:
        HTTPException: If the token is invalid or expired
    """
    claims = decode_access_token(credentials.credentials)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not claims.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        )
    return claims


async def require_admin(
    claims: Annotated[dict[str, Any], Depends(get_current_claims)],
) -> dict[str, Any]:
    """Require an admin role for rule and source administration.

    Raises:
        HTTPException: If the caller is not an admin
    """
    if not is_admin_claims(claims):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return claims


async def scope_from_path(webhook_id: str) -> str:
    """Bind the webhook ID from the path to the logging scope context."""
    set_scope_context(webhook_id)
    return webhook_id


def get_delivery_queue() -> DeliveryQueue:
    """Delivery queue dependency (overridden in tests)."""
    return _get_delivery_queue()


def get_webhook_client() -> WebhookClient:
    """Outbound webhook client dependency (overridden in tests)."""
    return webhook_client
