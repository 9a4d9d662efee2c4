"""JWT verification for the admin API.

Tokens are issued by the external auth service. ``create_access_token`` uses
the same secret and claims so that service (and the test suite) can mint
tokens this API accepts.
"""

from datetime import datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.settings import settings

_DEFAULT_SECRET = "dev-secret-key-change-in-production"

ADMIN_ROLES = ("admin", "tenant_admin")

if settings.environment == "production" and settings.jwt_secret_key == _DEFAULT_SECRET:
    raise RuntimeError(
        "SECURITY ERROR: JWT_SECRET_KEY environment variable must be set in production. "
        "Cannot use default secret key."
    )


def create_access_token(
    subject: str,
    role: str = "admin",
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token for a subject and role."""
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )
    claims = {"sub": subject, "role": role, "exp": expire}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode and verify an access token.

    Returns:
        Decoded claims, or None if the signature or expiry is invalid
    """
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def is_admin_claims(claims: dict[str, Any]) -> bool:
    """Check whether decoded claims grant rule administration."""
    return bool(claims.get("sub")) and claims.get("role") in ADMIN_ROLES
