# (c) Copyright Datacraft, 2026
"""Redis-backed decision cache store."""
import json
import logging
from typing import Any, Iterable

import redis

logger = logging.getLogger(__name__)


class RedisCacheStore:
	"""
	Shared cache store on Redis.

	Values are stored JSON-encoded, so only JSON-serializable decisions
	(booleans, permission maps, id lists) can be cached.
	"""

	def __init__(
		self,
		client: redis.Redis,
		default_ttl: int | None = None,
		scan_count: int = 500,
	):
		self.client = client
		self.default_ttl = default_ttl
		self.scan_count = scan_count

	@classmethod
	def from_url(cls, url: str, **kwargs) -> "RedisCacheStore":
		return cls(redis.Redis.from_url(url), **kwargs)

	def get(self, key: str, default: Any = None) -> Any:
		raw = self.client.get(key)
		if raw is None:
			return default
		return json.loads(raw)

	def set(self, key: str, value: Any, ttl: int | None = None) -> None:
		ttl = ttl if ttl is not None else self.default_ttl
		payload = json.dumps(value)
		if ttl:
			self.client.setex(key, ttl, payload)
		else:
			self.client.set(key, payload)

	def delete(self, key: str) -> None:
		self.client.delete(key)

	def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
		keys = list(keys)
		if not keys:
			return {}
		values = self.client.mget(keys)
		return {
			key: json.loads(raw)
			for key, raw in zip(keys, values)
			if raw is not None
		}

	def delete_matched(self, pattern: str) -> int:
		deleted = 0
		batch: list = []
		for key in self.client.scan_iter(match=pattern, count=self.scan_count):
			batch.append(key)
			if len(batch) >= self.scan_count:
				deleted += self.client.delete(*batch)
				batch = []
		if batch:
			deleted += self.client.delete(*batch)
		logger.debug(f"Deleted {deleted} keys matching {pattern}")
		return deleted
