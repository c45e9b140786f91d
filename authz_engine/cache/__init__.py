# (c) Copyright Datacraft, 2026
"""Decision caching."""
from authz_engine.config import Settings
from .backends import CacheStore, MemoryCacheStore
from .keys import CacheKeyBuilder
from .store import DecisionCache

__all__ = [
	'CacheStore',
	'MemoryCacheStore',
	'CacheKeyBuilder',
	'DecisionCache',
	'build_cache_store',
]


def build_cache_store(settings: Settings) -> CacheStore | None:
	"""Store selected by settings; ``None`` disables caching."""
	if not settings.redis_url:
		return None

	from .redis_store import RedisCacheStore

	return RedisCacheStore.from_url(settings.redis_url, default_ttl=settings.cache_ttl)
