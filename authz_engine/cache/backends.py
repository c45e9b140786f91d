# (c) Copyright Datacraft, 2026
"""Key/value stores usable as the decision cache."""
import fnmatch
import threading
import time
from typing import Any, Iterable, Protocol, runtime_checkable


@runtime_checkable
class CacheStore(Protocol):
	"""
	Minimal store contract.

	Optional capabilities, detected with ``hasattr``:
	- ``get_many(keys) -> dict`` returning only the hits
	- ``delete_matched(pattern)`` deleting keys matching a glob pattern
	"""

	def get(self, key: str, default: Any = None) -> Any: ...

	def set(self, key: str, value: Any, ttl: int | None = None) -> None: ...

	def delete(self, key: str) -> None: ...


class MemoryCacheStore:
	"""Thread-safe in-process store with per-entry expiry."""

	def __init__(self, default_ttl: int | None = None):
		self.default_ttl = default_ttl
		self._data: dict[str, tuple[Any, float | None]] = {}
		self._lock = threading.Lock()

	def get(self, key: str, default: Any = None) -> Any:
		with self._lock:
			entry = self._data.get(key)
			if entry is None:
				return default
			value, expires_at = entry
			if expires_at is not None and expires_at <= time.monotonic():
				del self._data[key]
				return default
			return value

	def set(self, key: str, value: Any, ttl: int | None = None) -> None:
		ttl = ttl if ttl is not None else self.default_ttl
		expires_at = time.monotonic() + ttl if ttl else None
		with self._lock:
			self._data[key] = (value, expires_at)

	def delete(self, key: str) -> None:
		with self._lock:
			self._data.pop(key, None)

	def get_many(self, keys: Iterable[str]) -> dict[str, Any]:
		missing = object()
		hits = {}
		for key in keys:
			value = self.get(key, missing)
			if value is not missing:
				hits[key] = value
		return hits

	def delete_matched(self, pattern: str) -> int:
		with self._lock:
			matched = [k for k in self._data if fnmatch.fnmatchcase(k, pattern)]
			for key in matched:
				del self._data[key]
		return len(matched)

	def clear(self) -> None:
		with self._lock:
			self._data.clear()

	def keys(self) -> list[str]:
		with self._lock:
			return list(self._data)

	def __len__(self) -> int:
		with self._lock:
			return len(self._data)
