# (c) Copyright Datacraft, 2026
"""Authorization engine: the entry point used by applications."""
import logging
import threading
from typing import Any, Callable, Iterable, Mapping

from sqlalchemy import Select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from authz_engine.batch import BatchPermissionChecker, cacheable
from authz_engine.cache import (
	CacheKeyBuilder, CacheStore, DecisionCache, build_cache_store,
)
from authz_engine.config import Settings
from authz_engine.exceptions import (
	NotAuthorized, PolicyNotFound, ScopeNotSupported,
)
from authz_engine.identity import display_name, has_stable_id, subject_key, type_name
from authz_engine.policy import Policy, PolicyContext, PolicyRegistry
from authz_engine.rebac import RelationshipChecker, RelationshipStore, RelationTuple

logger = logging.getLogger(__name__)

PrefetchHook = Callable[[list], Any]


class AuthorizationEngine:
	"""
	Answers "may subject perform action on object?".

	Decisions are resolved through the policy registry, evaluated by the
	policy's permission rules (which may consult the relationship graph)
	and memoized in the decision cache. Tuple mutations evict the
	affected cache entries after they are committed.

	Example:
		registry = PolicyRegistry(settings)
		registry.register(document_policy)

		engine = AuthorizationEngine(db, registry, cache_store=MemoryCacheStore())
		engine.grant(user, 'owner', document)
		engine.can(user, 'view', document)  # True
	"""

	def __init__(
		self,
		db: Session,
		registry: PolicyRegistry,
		cache_store: CacheStore | None = None,
		settings: Settings | None = None,
		prefetch: PrefetchHook | None = None,
	):
		self.db = db
		self.registry = registry
		self.settings = settings or registry.settings
		self.keys = CacheKeyBuilder(self.settings.cache_key_prefix)
		self.cache = DecisionCache(
			cache_store,
			keys=self.keys,
			default_ttl=self.settings.cache_ttl,
		)
		self.store = RelationshipStore(db, cache=self.cache)
		self.checker = RelationshipChecker(self.store, registry)
		self.prefetch = prefetch

		self._contexts: dict[str, dict[Policy, PolicyContext]] = {}
		self._contexts_lock = threading.Lock()

	@classmethod
	def from_settings(
		cls,
		db: Session,
		registry: PolicyRegistry,
		settings: Settings | None = None,
		prefetch: PrefetchHook | None = None,
	) -> "AuthorizationEngine":
		"""Engine with the cache store selected by settings."""
		settings = settings or registry.settings
		return cls(
			db,
			registry,
			cache_store=build_cache_store(settings),
			settings=settings,
			prefetch=prefetch,
		)

	# Decisions

	def can(
		self,
		subject: Any,
		action: str,
		obj: Any,
		context: Mapping | None = None,
	) -> bool:
		"""Permission check. Never raises: any internal error is a deny."""
		try:
			policy = self.registry.policy_for(obj)
			if policy is None:
				logger.debug(f"No policy for {type_name(obj)}, denying {action!r}")
				return False

			policy_context = self.policy_context_for(subject, policy)
			if not cacheable(subject, obj):
				return bool(policy_context.allowed(action, obj, context))

			key = self.keys.permission_key(subject, action, obj, _as_dict(context))
			return bool(self.cache.fetch(
				key,
				lambda: policy_context.allowed(action, obj, context),
			))
		except Exception as e:
			logger.error(
				f"Authorization check failed: {action!r} on {display_name(obj)} "
				f"by {display_name(subject)}: {type(e).__name__}: {e}"
			)
			return False

	def authorize(
		self,
		subject: Any,
		action: str,
		obj: Any,
		context: Mapping | None = None,
	) -> bool:
		"""
		Assertive check.

		Raises:
			PolicyNotFound: nothing in the type chain of obj has a policy
			NotAuthorized: the policy denies the action
		"""
		policy = self.registry.policy_for(obj)
		if policy is None:
			raise PolicyNotFound(type_name(obj), _as_dict(context))

		if not self.can(subject, action, obj, context):
			raise NotAuthorized(
				subject,
				action,
				obj,
				available_permissions=policy.available_permissions,
				context=_as_dict(context),
			)
		return True

	def all_permissions(
		self,
		subject: Any,
		obj: Any,
		context: Mapping | None = None,
	) -> dict[str, bool]:
		"""Decision for every declared action. Empty on error or missing policy."""
		try:
			policy = self.registry.policy_for(obj)
			if policy is None:
				return {}

			policy_context = self.policy_context_for(subject, policy)
			if not cacheable(subject, obj):
				return policy_context.all_permissions(obj, context)

			key = self.keys.all_permissions_key(subject, obj, _as_dict(context))
			return dict(self.cache.fetch(
				key,
				lambda: policy_context.all_permissions(obj, context),
			))
		except Exception as e:
			logger.error(
				f"Permission listing failed for {display_name(obj)} "
				f"by {display_name(subject)}: {type(e).__name__}: {e}"
			)
			return {}

	def batch_permissions(
		self,
		subject: Any,
		objects: Iterable[Any],
		context: Mapping | None = None,
	) -> dict[Any, dict[str, bool]]:
		"""all_permissions for many objects, with one bulk cache read."""
		return BatchPermissionChecker(self, subject, objects, context).call()

	def accessible_by(
		self,
		subject: Any,
		action: str,
		resource_class: type,
		context: Mapping | None = None,
	) -> Select:
		"""
		Select statement for the records of resource_class subject may act on.

		Raises:
			ScopeNotSupported: resource_class is not a mapped class
			PolicyNotFound: no policy resolves for resource_class
		"""
		if not isinstance(resource_class, type) or sa_inspect(resource_class, raiseerr=False) is None:
			raise ScopeNotSupported(type_name(resource_class))

		policy = self.registry.policy_for(resource_class)
		if policy is None:
			raise PolicyNotFound(type_name(resource_class), _as_dict(context))

		return self.policy_context_for(subject, policy).scope(action, resource_class, context)

	# Relationships

	def grant(
		self,
		subject: Any,
		relation: str,
		obj: Any,
		created_by: str | None = None,
	) -> RelationTuple:
		return self.store.grant(subject, relation, obj, created_by=created_by)

	def revoke(self, subject: Any, relation: str, obj: Any) -> int:
		return self.store.revoke(subject, relation, obj)

	def revoke_all(self, subject: Any = None, obj: Any = None) -> int:
		return self.store.revoke_all(subject=subject, obj=obj)

	def relation_exists(self, subject: Any, relation: str, obj: Any) -> bool:
		"""Direct tuple check, no hierarchy and no via paths."""
		return self.store.exists(subject, relation, obj)

	def has_relation(self, subject: Any, relation: str, obj: Any) -> bool:
		"""Relation check through the hierarchy and via paths."""
		return self.checker.has_relation(subject, relation, obj)

	def relations_between(self, subject: Any, obj: Any) -> set[str]:
		return self.store.relations_between(subject, obj)

	def objects_with(
		self,
		subject: Any,
		relation: str,
		object_type: Any = None,
	) -> list[RelationTuple]:
		return self.store.objects_with(subject, relation, object_type)

	def subjects_with(
		self,
		relation: str,
		obj: Any,
		subject_type: Any = None,
	) -> list[RelationTuple]:
		return self.store.subjects_with(relation, obj, subject_type)

	def objects_with_effective(
		self,
		subject: Any,
		relation: str,
		object_type: Any,
	) -> list[RelationTuple]:
		return self.checker.objects_with_effective(subject, relation, object_type)

	def object_ids_for_relation(
		self,
		subject: Any,
		relation: str,
		object_type: Any,
	) -> set[str]:
		"""Ids of objects of object_type on which subject holds relation (cached)."""
		if subject is not None and not has_stable_id(subject):
			return self.checker.object_ids_for_relation(subject, relation, object_type)

		key = self.keys.relation_scope_key(subject, relation, object_type)
		ids = self.cache.fetch(
			key,
			lambda: sorted(self.checker.object_ids_for_relation(subject, relation, object_type)),
		)
		return set(ids)

	# Cache

	def clear_cache(self) -> None:
		self.cache.clear()

	def clear_cache_for_resource(self, obj: Any) -> None:
		self.cache.clear_for_resource(obj)

	def clear_cache_for_user(self, subject: Any) -> None:
		self.cache.clear_for_user(subject)

	# Policy contexts

	def policy_context_for(self, subject: Any, policy: Policy) -> PolicyContext:
		"""
		Policy bound to subject, created once per (subject, policy).

		Subjects without a stable id get a fresh context on every call.
		"""
		if subject is not None and not has_stable_id(subject):
			return PolicyContext(policy, subject, self)

		key = subject_key(subject)
		by_policy = self._contexts.get(key)
		if by_policy is not None:
			context = by_policy.get(policy)
			if context is not None:
				return context

		with self._contexts_lock:
			by_policy = self._contexts.setdefault(key, {})
			context = by_policy.get(policy)
			if context is None:
				context = PolicyContext(policy, subject, self)
				by_policy[policy] = context
			return context

	def clear_policy_context_cache(self) -> None:
		with self._contexts_lock:
			self._contexts = {}


def _as_dict(context: Mapping | None) -> dict | None:
	return dict(context) if context else None
