# (c) Copyright Datacraft, 2026
"""Decision cache: memoization over an optional key/value store."""
import logging
from typing import Any, Callable, Iterable

from authz_engine.identity import type_name
from .backends import CacheStore
from .keys import CacheKeyBuilder

logger = logging.getLogger(__name__)

_MISS = object()


class DecisionCache:
	"""
	Performance layer in front of decision computation.

	The store is optional; without one every fetch computes directly.
	Store failures are logged and degrade to direct computation, they never
	reach the caller.
	"""

	def __init__(
		self,
		store: CacheStore | None = None,
		keys: CacheKeyBuilder | None = None,
		default_ttl: int = 3600,
	):
		self.store = store
		self.keys = keys or CacheKeyBuilder()
		self.default_ttl = default_ttl

	@property
	def enabled(self) -> bool:
		return self.store is not None

	@property
	def supports_get_many(self) -> bool:
		return self.enabled and callable(getattr(self.store, 'get_many', None))

	@property
	def supports_delete_matched(self) -> bool:
		return self.enabled and callable(getattr(self.store, 'delete_matched', None))

	def fetch(
		self,
		key: str,
		compute: Callable[[], Any],
		ttl: int | None = None,
	) -> Any:
		"""Return the cached value for key, computing and storing it on a miss."""
		if not self.enabled:
			return compute()

		try:
			value = self.store.get(key, _MISS)
		except Exception as e:
			logger.error(f"Cache read failed for key '{key}': {e}")
			return compute()

		if value is not _MISS:
			logger.debug(f"Cache hit: {key}")
			return value

		logger.debug(f"Cache miss: {key}")
		value = compute()
		self.write(key, value, ttl=ttl)
		return value

	def write(self, key: str, value: Any, ttl: int | None = None) -> None:
		if not self.enabled:
			return
		try:
			self.store.set(key, value, ttl or self.default_ttl)
		except Exception as e:
			logger.error(f"Cache write failed for key '{key}': {e}")

	def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
		"""Bulk read in one round trip; empty when unsupported or failing."""
		keys = list(keys)
		if not keys or not self.supports_get_many:
			return {}
		try:
			return dict(self.store.get_many(keys))
		except Exception as e:
			logger.error(f"Cache bulk read failed for {len(keys)} keys: {e}")
			return {}

	def delete(self, key: str) -> None:
		if not self.enabled:
			return
		try:
			self.store.delete(key)
		except Exception as e:
			logger.error(f"Cache delete failed for key '{key}': {e}")

	def clear(self) -> None:
		self._delete_matched(self.keys.pattern_all(), label="clear")

	def clear_for_resource(self, obj: Any) -> None:
		self._delete_matched(
			self.keys.pattern_for_resource(obj), label="clear_for_resource"
		)

	def clear_for_user(self, subject: Any) -> None:
		self._delete_matched(
			self.keys.pattern_for_subject(subject), label="clear_for_user"
		)

	def clear_relation_scopes(self, object_type: Any) -> None:
		self._delete_matched(
			self.keys.pattern_for_relation_scopes(object_type),
			label="clear_relation_scopes",
		)

	def invalidate_relationship(self, subject: Any, obj: Any) -> None:
		"""Evict everything a tuple change between subject and obj may affect."""
		if subject is not None:
			self.clear_for_user(subject)
		if obj is not None:
			self.clear_for_resource(obj)
			self.clear_relation_scopes(type_name(obj))

	def _delete_matched(self, pattern: str, label: str) -> None:
		if not self.enabled:
			return
		if not self.supports_delete_matched:
			logger.warning(
				f"Cache store {type(self.store).__name__} doesn't support "
				f"delete_matched. {label} had no effect."
			)
			return
		try:
			self.store.delete_matched(pattern)
			logger.debug(f"Cache evicted pattern {pattern}")
		except Exception as e:
			logger.error(f"Cache {label} failed for pattern '{pattern}': {e}")
