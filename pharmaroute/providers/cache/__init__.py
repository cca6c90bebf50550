"""Cache providers.

MemoryCacheProvider is a TTL map -- fast but not shared across processes.
For multi-worker deployments, swap in a Redis adapter implementing
ICacheProvider without changing the resolver.
"""

from pharmaroute.providers.cache.memory_cache import MemoryCacheProvider

__all__ = ["MemoryCacheProvider"]
