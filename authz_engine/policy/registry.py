# (c) Copyright Datacraft, 2026
"""Policy registry with type-arena ancestor fallback."""
import logging
import threading
from typing import Any

from authz_engine.cache.keys import CacheKeyBuilder
from authz_engine.config import Settings, get_settings
from authz_engine.identity import type_name
from authz_engine.rebac.graph import RelationSchema

from .base import Policy

logger = logging.getLogger(__name__)

_UNRESOLVED = object()


class PolicyRegistry:
	"""
	Resource type -> policy lookup.

	Types live in an explicit arena with parent pointers (declare_type).
	A type without its own policy uses the nearest ancestor's, the walk
	stops at the configured root types.

	One registry is built at startup and handed to the engine; tests use a
	fresh instance.
	"""

	MAX_DEPTH = 32

	def __init__(self, settings: Settings | None = None):
		self.settings = settings or get_settings()
		self.keys = CacheKeyBuilder(self.settings.cache_key_prefix)
		self._policies: dict[str, Policy] = {}
		self._parents: dict[str, str | None] = {}
		self._resolved: dict[str, Policy | None] = {}
		self._generation = 0
		self._lock = threading.Lock()

	def register(self, policy: Policy) -> Policy:
		"""Register and freeze a policy. Replaces any policy of the same type."""
		policy.freeze()
		with self._lock:
			self._policies[policy.resource_type] = policy
			self._parents.setdefault(policy.resource_type, None)
			self._reset_resolved()
		logger.debug(f"Registered {policy.name}")
		return policy

	def unregister(self, resource_type: Any) -> Policy | None:
		with self._lock:
			policy = self._policies.pop(type_name(resource_type), None)
			self._reset_resolved()
		return policy

	def declare_type(self, resource_type: Any, parent: Any = None) -> str:
		"""Add a type tag to the arena, optionally under a parent type."""
		tag = type_name(resource_type)
		parent_tag = type_name(parent) if parent is not None else None
		with self._lock:
			self._parents[tag] = parent_tag
			if parent_tag is not None:
				self._parents.setdefault(parent_tag, None)
			self._reset_resolved()
		return tag

	def parent_of(self, resource_type: Any) -> str | None:
		return self._parents.get(type_name(resource_type))

	def ancestors(self, resource_type: Any) -> list[str]:
		"""Ancestor tags, nearest first, up to (excluding) the root types."""
		roots = set(self.settings.root_types)
		result = []
		seen = {type_name(resource_type)}
		current = self.parent_of(resource_type)

		while current is not None and current not in roots:
			if current in seen:
				logger.warning(f"Type cycle at {current!r} while walking ancestors")
				break
			if len(result) >= self.MAX_DEPTH:
				logger.warning(
					f"Ancestor walk for {type_name(resource_type)!r} stopped "
					f"after {self.MAX_DEPTH} levels"
				)
				break
			result.append(current)
			seen.add(current)
			current = self._parents.get(current)

		return result

	def policy_for(self, resource_type: Any) -> Policy | None:
		"""
		Policy for a type tag, class or instance.

		Exact registration first, then the nearest registered ancestor.
		Returns None when nothing in the chain has a policy.
		"""
		if resource_type is None:
			return None

		tag = type_name(resource_type)
		memo_key = self.keys.policy_key(tag)
		policy = self._resolved.get(memo_key, _UNRESOLVED)
		if policy is not _UNRESOLVED:
			return policy

		# not memoized when the registry changed during _resolve
		generation = self._generation
		policy = self._resolve(tag)
		with self._lock:
			if generation == self._generation:
				self._resolved[memo_key] = policy
		return policy

	def schema_for(self, resource_type: Any) -> RelationSchema | None:
		policy = self.policy_for(resource_type)
		return policy.schema if policy is not None else None

	@property
	def registered_types(self) -> list[str]:
		return list(self._policies)

	def _reset_resolved(self) -> None:
		self._resolved = {}
		self._generation += 1

	def _resolve(self, tag: str) -> Policy | None:
		policy = self._policies.get(tag)
		if policy is not None:
			return policy

		for ancestor in self.ancestors(tag):
			policy = self._policies.get(ancestor)
			if policy is not None:
				logger.debug(f"{tag} uses {policy.name} of ancestor {ancestor}")
				return policy

		return None

	def __contains__(self, resource_type: Any) -> bool:
		return self.policy_for(resource_type) is not None

	def __len__(self) -> int:
		return len(self._policies)
