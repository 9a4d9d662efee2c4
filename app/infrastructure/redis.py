"""Redis client wrapper for idempotency and cross-process cache invalidation."""

import json
import logging
from typing import Any

import redis.asyncio as aioredis

from app.settings import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Async Redis wrapper that degrades to no-ops when Redis is disabled."""

    def __init__(self) -> None:
        self._client: aioredis.Redis | None = None
        self._enabled: bool = settings.redis_enabled

    @property
    def enabled(self) -> bool:
        return self._enabled and self._client is not None

    async def connect(self) -> None:
        """Connect to Redis; failures leave the service running without it."""
        if not self._enabled:
            logger.info("Redis disabled - skipping connection")
            return
        if self._client is None:
            try:
                self._client = aioredis.from_url(
                    settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._client.ping()
                logger.info("Redis connected successfully")
            except Exception as e:
                logger.warning(f"Redis connection failed: {e}. Continuing without Redis.")
                self._client = None
                self._enabled = False

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(self, key: str) -> str | None:
        if not self.enabled:
            return None
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        """Set value in Redis.

        Args:
            key: Redis key
            value: Value to set
            ttl: Optional time-to-live in seconds

        Returns:
            True if successful (always True when disabled)
        """
        if not self.enabled:
            return True
        if ttl:
            return await self._client.setex(key, ttl, value)
        return await self._client.set(key, value)

    async def delete(self, key: str) -> int:
        if not self.enabled:
            return 0
        return await self._client.delete(key)

    async def incr(self, key: str) -> int | None:
        """Atomically increment a counter.

        Returns:
            New value, or None when Redis is disabled
        """
        if not self.enabled:
            return None
        return await self._client.incr(key)

    async def get_json(self, key: str) -> dict[str, Any] | None:
        value = await self.get(key)
        if value is None:
            return None
        return json.loads(value)

    async def set_json(self, key: str, value: dict[str, Any], ttl: int | None = None) -> bool:
        return await self.set(key, json.dumps(value, default=str), ttl)


# Global Redis client instance
redis_client = RedisClient()
