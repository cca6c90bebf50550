"""In-memory cache provider using cachetools.TTLCache.

Backs the assignment resolver's 5-minute cache.  Not shared across
processes; a Redis-backed ICacheProvider can replace it without touching
the resolver.
"""

from __future__ import annotations

from typing import Any

import structlog
from cachetools import TTLCache

from pharmaroute.interfaces.cache_provider import ICacheProvider

logger = structlog.get_logger(logger_name=__name__)


class MemoryCacheProvider(ICacheProvider):
    """In-memory TTL cache backed by ``cachetools.TTLCache``.

    Parameters
    ----------
    max_size:
        Maximum number of entries before the least-recently-used entry
        is evicted.
    ttl:
        Time-to-live in seconds for cache entries.
    timer:
        Clock used for expiry; injectable so tests can move time forward.
    """

    def __init__(self, max_size: int = 256, ttl: int = 300, timer: Any = None) -> None:
        self._default_ttl = ttl
        if timer is None:
            self._cache: TTLCache[str, Any] = TTLCache(maxsize=max_size, ttl=ttl)
        else:
            self._cache = TTLCache(maxsize=max_size, ttl=ttl, timer=timer)

    # ------------------------------------------------------------------
    # ICacheProvider implementation
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        """Retrieve the cached value for *key*, or ``None`` if missing/expired."""
        value = self._cache.get(key)
        if value is not None:
            logger.debug("cache_hit", key=key)
        else:
            logger.debug("cache_miss", key=key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store *value* under *key*.

        ``TTLCache`` applies the uniform TTL set at construction time; the
        per-item *ttl* is accepted for interface compatibility only.
        """
        self._cache[key] = value
        logger.debug("cache_set", key=key)

    async def delete(self, key: str) -> None:
        self._cache.pop(key, None)
        logger.debug("cache_delete", key=key)

    async def clear(self, prefix: str = "") -> None:
        """Remove every key starting with *prefix*; everything when empty."""
        if not prefix:
            self._cache.clear()
            logger.debug("cache_cleared")
            return
        for key in [k for k in list(self._cache.keys()) if k.startswith(prefix)]:
            self._cache.pop(key, None)
        logger.debug("cache_cleared", prefix=prefix)
