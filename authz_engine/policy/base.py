# (c) Copyright Datacraft, 2026
"""Policies: permissions, relation schema, conditions and scopes of a resource type."""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping

from sqlalchemy import false, or_, select, Select
from sqlalchemy import inspect as sa_inspect

from authz_engine.exceptions import (
	PolicyFrozenError, ScopeNotDeclared, UnknownActionError,
)
from authz_engine.identity import type_name
from authz_engine.rebac.graph import RelationDeclaration, RelationSchema

from .allow_where import build_criterion
from .permission import Permission, RuleContext

logger = logging.getLogger(__name__)

ScopeCriterion = Callable[[type, Any, RuleContext], Any]


@dataclass(frozen=True)
class ScopeConfig:
	"""How accessible_by enumerates records for an action."""
	action: str
	relation: str | None = None
	where: ScopeCriterion | None = None


class Policy:
	"""
	Authorization policy of one resource type.

	Declared once, then registered; registration freezes it.

	Example:
		policy = Policy(Document)
		policy.relation('viewer')
		policy.relation('editor', requires=['viewer'])
		policy.relation('viewer', via={'member': Team})

		view = policy.permission('view', relation='viewer')
		view.allow_if(lambda doc, user, ctx: doc.public)
	"""

	def __init__(self, resource_type: Any, name: str | None = None):
		self.resource_type = type_name(resource_type)
		self.resource_class = resource_type if isinstance(resource_type, type) else None
		self.name = name or f"{self.resource_type}Policy"

		self.schema = RelationSchema()
		self._permissions: dict[str, Permission] = {}
		self._conditions: dict[str, Callable] = {}
		self._relationships: dict[str, Callable] = {}
		self._scopes: dict[str, ScopeConfig] = {}
		self._frozen = False

	# Declarations

	def relation(
		self,
		name: str,
		requires: Iterable[str] = (),
		via: Mapping[str, Any] | None = None,
	) -> RelationDeclaration:
		"""Declare a relation, its implications and via paths."""
		self._check_mutable()
		return self.schema.declare(name, requires=requires, via=via)

	def permission(self, name: str, relation: str | None = None) -> Permission:
		"""Declare a permission; relation adds an implicit has_relation rule."""
		self._check_mutable()
		permission = Permission(name, relation=relation)
		self._permissions[permission.name] = permission
		return permission

	def condition(self, name: str, fn: Callable | None = None):
		"""Register a reusable condition fn(obj, subject, ctx). Usable as a decorator."""
		def register(func):
			self._check_mutable()
			self._conditions[str(name)] = func
			return func
		return register(fn) if fn is not None else register

	def relationship(self, name: str, fn: Callable | None = None):
		"""Register a named relationship accessor fn(obj). Usable as a decorator."""
		def register(func):
			self._check_mutable()
			self._relationships[str(name)] = func
			return func
		return register(fn) if fn is not None else register

	def scope(
		self,
		action: str,
		relation: str | None = None,
		where: ScopeCriterion | None = None,
	) -> ScopeConfig:
		"""
		Declare how to enumerate accessible records for action.

		relation: records on which the subject holds it (direct or via)
		where: where(resource_class, subject, ctx) -> SQL criterion, OR-ed
		with the relation scope when both are given
		"""
		self._check_mutable()
		config = ScopeConfig(
			action=str(action),
			relation=str(relation) if relation else None,
			where=where,
		)
		self._scopes[config.action] = config
		return config

	# Introspection

	@property
	def permissions(self) -> dict[str, Permission]:
		return dict(self._permissions)

	@property
	def available_permissions(self) -> list[str]:
		return list(self._permissions)

	@property
	def scopes(self) -> dict[str, ScopeConfig]:
		return dict(self._scopes)

	def get_permission(self, action: str) -> Permission | None:
		return self._permissions.get(str(action))

	def get_condition(self, name: str) -> Callable | None:
		return self._conditions.get(str(name))

	def get_relationship(self, name: str) -> Callable | None:
		return self._relationships.get(str(name))

	def get_scope(self, action: str) -> ScopeConfig | None:
		return self._scopes.get(str(action))

	@property
	def frozen(self) -> bool:
		return self._frozen

	def freeze(self):
		"""Make the policy immutable."""
		self._frozen = True
		self.schema.freeze()
		for permission in self._permissions.values():
			permission.freeze()

	def _check_mutable(self):
		if self._frozen:
			raise PolicyFrozenError(f"{self.name} is registered and can no longer change")

	def __repr__(self):
		return f"Policy({self.resource_type}: {', '.join(self._permissions) or 'no permissions'})"


class PolicyContext:
	"""
	A policy bound to one subject and the engine.

	Predicates reach the relationship graph and the policy's named helpers
	through this object (via the RuleContext they receive).
	"""

	def __init__(self, policy: Policy, subject: Any, engine):
		self.policy = policy
		self.subject = subject
		self.engine = engine

	def rule_context(self, context: Mapping | None = None) -> RuleContext:
		return RuleContext(context, self)

	def allowed(self, action: str, obj: Any, context: Mapping | None = None) -> bool:
		permission = self.policy.get_permission(action)
		if permission is None:
			return False
		return permission.decide(obj, self.subject, self.rule_context(context))

	def all_permissions(self, obj: Any, context: Mapping | None = None) -> dict[str, bool]:
		ctx = self.rule_context(context)
		return {
			name: permission.decide(obj, self.subject, ctx)
			for name, permission in self.policy.permissions.items()
		}

	def scope(
		self,
		action: str,
		resource_class: type,
		context: Mapping | None = None,
	) -> Select:
		"""Select statement for the records of resource_class the subject may act on."""
		action = str(action)
		ctx = self.rule_context(context)
		stmt = select(resource_class)
		config = self.policy.get_scope(action)
		permission = self.policy.get_permission(action)

		if config is not None:
			criteria = []
			if config.relation:
				criteria.append(self._relation_criterion(resource_class, config.relation))
			if config.where is not None:
				criteria.append(config.where(resource_class, self.subject, ctx))
			return stmt.where(or_(*criteria)) if criteria else stmt

		if permission is None:
			raise UnknownActionError(self.policy.resource_type, action)

		criteria = []
		if permission.relation:
			criteria.append(self._relation_criterion(resource_class, permission.relation))
		where = build_criterion(resource_class, permission.condition_sets(self.subject, ctx))
		if where is not None:
			criteria.append(where)

		if not criteria:
			raise ScopeNotDeclared(self.policy.resource_type, action)
		return stmt.where(or_(*criteria))

	# Helpers for rules

	def has_relation(self, subject: Any, relation: str, obj: Any) -> bool:
		return self.engine.has_relation(subject, relation, obj)

	def relation_exists(self, subject: Any, relation: str, obj: Any) -> bool:
		return self.engine.relation_exists(subject, relation, obj)

	def objects_with(self, subject: Any, relation: str, object_type: Any = None):
		return self.engine.objects_with(subject, relation, object_type)

	def evaluate_condition(self, name: str, obj: Any, ctx: RuleContext | None = None) -> Any:
		condition = self.policy.get_condition(name)
		if condition is None:
			return None
		return condition(obj, self.subject, ctx if ctx is not None else self.rule_context())

	def evaluate_relationship(self, name: str, obj: Any) -> Any:
		relationship = self.policy.get_relationship(name)
		if relationship is None:
			return None
		return relationship(obj)

	def _relation_criterion(self, resource_class: type, relation: str):
		ids = self.engine.object_ids_for_relation(self.subject, relation, resource_class)
		if not ids:
			return false()

		mapper = sa_inspect(resource_class)
		pk_column = mapper.primary_key[0]
		pk_attr = mapper.get_property_by_column(pk_column).class_attribute
		return pk_attr.in_(_coerce_ids(pk_column, ids))


def _coerce_ids(column, ids: Iterable[str]) -> list:
	"""Convert stored textual ids to the primary key's Python type."""
	try:
		python_type = column.type.python_type
	except NotImplementedError:
		return sorted(ids)

	coerced = []
	for ident in ids:
		try:
			coerced.append(python_type(ident))
		except (TypeError, ValueError):
			logger.warning(f"Skipping id {ident!r}: not a valid {python_type.__name__}")
	return coerced
