# (c) Copyright Datacraft, 2026
"""Batch permission checks over many objects."""
import logging
from typing import Any, Iterable, Mapping

from authz_engine.identity import display_name, has_stable_id

logger = logging.getLogger(__name__)


class BatchPermissionChecker:
	"""
	all_permissions for a list of objects.

	1. run the engine's prefetch hook so rules don't trigger N+1 queries
	2. build every cache key up front
	3. read the hits in one round trip when the store supports get_many
	4. compute and store each miss

	Every input object gets an entry; objects without a policy map to {}.
	"""

	def __init__(
		self,
		engine,
		subject: Any,
		objects: Iterable[Any],
		context: Mapping | None = None,
	):
		self.engine = engine
		self.subject = subject
		self.objects = list(objects)
		self.context = dict(context) if context else None

	def call(self) -> dict[Any, dict[str, bool]]:
		if not self.objects:
			return {}

		self._prefetch()

		results: dict[Any, dict[str, bool]] = {}
		pending: list[tuple[Any, Any, str | None]] = []
		for obj in self.objects:
			policy = self.engine.registry.policy_for(obj)
			if policy is None:
				results[obj] = {}
				continue
			key = None
			if cacheable(self.subject, obj):
				key = self.engine.keys.all_permissions_key(self.subject, obj, self.context)
			pending.append((obj, policy, key))

		hits = self.engine.cache.get_many(key for _, _, key in pending if key is not None)
		logger.debug(f"Batch permissions: {len(hits)} of {len(pending)} cached")

		for obj, policy, key in pending:
			if key in hits:
				results[obj] = dict(hits[key])
				continue
			permissions = self._compute(obj, policy)
			if permissions is not None and key is not None:
				self.engine.cache.write(key, permissions)
			results[obj] = permissions or {}

		return results

	def _prefetch(self) -> None:
		hook = self.engine.prefetch
		if hook is None:
			return
		try:
			hook(self.objects)
		except Exception as e:
			logger.warning(f"Prefetch failed, continuing without it: {e}")

	def _compute(self, obj: Any, policy) -> dict[str, bool] | None:
		try:
			context = self.engine.policy_context_for(self.subject, policy)
			return context.all_permissions(obj, self.context)
		except Exception as e:
			logger.error(
				f"Permission listing failed for {display_name(obj)} "
				f"by {display_name(self.subject)}: {type(e).__name__}: {e}"
			)
			return None


def cacheable(subject: Any, obj: Any) -> bool:
	"""Whether a decision about subject and obj may be stored under a key."""
	if subject is not None and not has_stable_id(subject):
		return False
	return isinstance(obj, type) or has_stable_id(obj)
