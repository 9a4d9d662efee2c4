"""Per-process cache of immutable rule snapshots.

Snapshots are replaced wholesale, never mutated, so a matcher holding a
tuple keeps a consistent view while an admin edit swaps in a new one.
Entries expire after ``rule_cache_ttl_seconds``. When Redis is enabled a
per-scope version counter is also compared so invalidations made by another
process are seen on the next read.
"""

import logging
import time
from collections.abc import Awaitable, Callable

from app.domain.models.rules import RuleSnapshot
from app.infrastructure.redis import redis_client
from app.settings import settings

logger = logging.getLogger(__name__)

ROUTING = "routing"
FORWARDING = "forwarding"

GLOBAL_SCOPE = "__all__"

_VERSION_KEY_PREFIX = "rules:version:"

Loader = Callable[[], Awaitable[list[RuleSnapshot]]]


class RuleCache:
    """Read-through snapshot cache keyed by (kind, scope)."""

    def __init__(self, ttl_seconds: int | None = None) -> None:
        self.ttl_seconds = settings.rule_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        # (kind, scope) -> (loaded_at, version, rules)
        self._entries: dict[tuple[str, str], tuple[float, str | None, tuple[RuleSnapshot, ...]]] = {}

    @staticmethod
    def _version_key(kind: str, scope: str) -> str:
        return f"{_VERSION_KEY_PREFIX}{kind}:{scope}"

    async def _version(self, key: tuple[str, str]) -> str | None:
        version = await redis_client.get(self._version_key(*key))
        if key[0] == ROUTING and key[1] != GLOBAL_SCOPE:
            # Scoped routing snapshots also contain the global rules
            global_version = await redis_client.get(self._version_key(ROUTING, GLOBAL_SCOPE))
            return f"{version}:{global_version}"
        return version

    async def get(self, kind: str, scope: str | None, loader: Loader) -> tuple[RuleSnapshot, ...]:
        """Return the snapshot for a scope, loading it on miss or expiry."""
        key = (kind, scope or GLOBAL_SCOPE)
        version = await self._version(key)
        entry = self._entries.get(key)
        if entry is not None:
            loaded_at, cached_version, rules = entry
            if time.monotonic() - loaded_at < self.ttl_seconds and cached_version == version:
                return rules

        rules = tuple(sorted(await loader(), key=lambda r: r.order_key))
        self._entries[key] = (time.monotonic(), version, rules)
        return rules

    async def invalidate(self, kind: str, scope: str | None) -> None:
        """Drop a scope's snapshot here and, through Redis, in other processes.

        Global routing rules apply to every scope, so invalidating the global
        routing scope clears every routing snapshot in this process.
        """
        key = (kind, scope or GLOBAL_SCOPE)
        if kind == ROUTING and key[1] == GLOBAL_SCOPE:
            for cached in [k for k in self._entries if k[0] == ROUTING]:
                self._entries.pop(cached, None)
        else:
            self._entries.pop(key, None)
        await redis_client.incr(self._version_key(*key))
        logger.debug("Rule cache invalidated", extra={"kind": kind, "scope": key[1]})

    def clear(self) -> None:
        self._entries.clear()


rule_cache = RuleCache()
