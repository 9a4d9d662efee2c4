"""Idempotency key handling utilities."""

import hashlib
import json
from typing import Any

IDEMPOTENCY_KEY_PREFIX = "idempotency:"


def generate_idempotency_key(method: str, path: str, body: dict[str, Any] | None = None) -> str:
    """Derive an idempotency key from the request when the client sends none.

    Two submissions of the same JSON body to the same endpoint map to the
    same key regardless of key order in the body.
    """
    key_parts = [method.upper(), path.rstrip("/")]
    if body:
        key_parts.append(json.dumps(body, sort_keys=True, default=str))

    return hashlib.sha256("|".join(key_parts).encode()).hexdigest()


def idempotency_cache_key(key: str) -> str:
    """Redis key under which a cached response for ``key`` is stored."""
    return f"{IDEMPOTENCY_KEY_PREFIX}{key}"
