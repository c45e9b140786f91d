# (c) Copyright Datacraft, 2026
"""Permission rules with deny-first, fail-closed evaluation."""
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterator

from authz_engine.exceptions import ConfigurationError, PolicyFrozenError
from authz_engine.identity import display_name

from .allow_where import record_matches

logger = logging.getLogger(__name__)

Predicate = Callable[[Any, Any, "RuleContext"], Any]
ConditionBuilder = Callable[[Any, "RuleContext"], Any]


class RuleEffect(str, Enum):
	"""Effect of a matching rule."""
	ALLOW = 'allow'
	DENY = 'deny'


@dataclass(frozen=True)
class Rule:
	"""A single predicate with its effect."""
	effect: RuleEffect
	predicate: Predicate
	name: str | None = None

	@property
	def label(self) -> str:
		return self.name or getattr(self.predicate, '__name__', 'rule')


class RuleContext(Mapping):
	"""
	Argument passed to every predicate.

	Behaves as a read-only mapping over the request context and exposes the
	helpers of the policy the rule belongs to.
	"""

	def __init__(self, attributes: Mapping | None = None, policy=None):
		self._attributes = dict(attributes or {})
		self.policy = policy

	@property
	def attributes(self) -> dict:
		return dict(self._attributes)

	def __getitem__(self, key):
		return self._attributes[key]

	def __iter__(self) -> Iterator:
		return iter(self._attributes)

	def __len__(self) -> int:
		return len(self._attributes)

	def has_relation(self, subject: Any, relation: str, obj: Any) -> bool:
		return self._require_policy().has_relation(subject, relation, obj)

	def relation_exists(self, subject: Any, relation: str, obj: Any) -> bool:
		return self._require_policy().relation_exists(subject, relation, obj)

	def objects_with(self, subject: Any, relation: str, object_type: Any = None):
		return self._require_policy().objects_with(subject, relation, object_type)

	def condition(self, name: str, obj: Any) -> Any:
		return self._require_policy().evaluate_condition(name, obj, self)

	def relationship(self, name: str, obj: Any) -> Any:
		return self._require_policy().evaluate_relationship(name, obj)

	def _require_policy(self):
		if self.policy is None:
			raise ConfigurationError("Rule helpers need a policy context")
		return self.policy

	def __repr__(self):
		return f"RuleContext({self._attributes!r})"


class Permission:
	"""
	Named permission: ordered deny and allow rules.

	Decision: any matching deny rule denies, then any matching allow rule
	allows, otherwise deny. A rule that raises counts as not matching and
	evaluation continues with the next rule.
	"""

	def __init__(self, name: str, relation: str | None = None):
		self.name = str(name)
		self.relation = str(relation) if relation else None
		self._rules: list[Rule] = []
		self._condition_builders: list[ConditionBuilder] = []
		self._frozen = False

		if self.relation:
			self._add(Rule(
				RuleEffect.ALLOW,
				self._relation_predicate(self.relation),
				name=f"has_relation:{self.relation}",
			))

	def allow_if(self, predicate: Predicate) -> Predicate:
		"""Add an allow rule. Usable as a decorator."""
		self._add(Rule(RuleEffect.ALLOW, predicate))
		return predicate

	def deny_if(self, predicate: Predicate) -> Predicate:
		"""Add a deny rule. Usable as a decorator."""
		self._add(Rule(RuleEffect.DENY, predicate))
		return predicate

	def allow_where(self, builder: ConditionBuilder) -> ConditionBuilder:
		"""
		Add declarative conditions.

		builder(subject, ctx) returns a condition dict or a list of them. At
		runtime the permission allows when the object matches any of them;
		the same dicts build the SQL scope for accessible_by.
		"""
		self._add(Rule(
			RuleEffect.ALLOW,
			self._where_predicate(builder),
			name=f"allow_where:{getattr(builder, '__name__', 'conditions')}",
		))
		self._condition_builders.append(builder)
		return builder

	@property
	def rules(self) -> list[Rule]:
		return list(self._rules)

	@property
	def deny_rules(self) -> list[Rule]:
		return [r for r in self._rules if r.effect == RuleEffect.DENY]

	@property
	def allow_rules(self) -> list[Rule]:
		return [r for r in self._rules if r.effect == RuleEffect.ALLOW]

	@property
	def condition_builders(self) -> list[ConditionBuilder]:
		return list(self._condition_builders)

	def condition_sets(self, subject: Any, ctx: "RuleContext") -> list[dict]:
		"""Evaluate every allow_where builder for subject."""
		result = []
		for builder in self._condition_builders:
			result.extend(_as_condition_list(builder(subject, ctx)))
		return result

	def decide(
		self,
		obj: Any,
		subject: Any,
		context: Mapping | None = None,
		policy=None,
	) -> bool:
		"""Evaluate the permission for subject on obj."""
		if isinstance(context, RuleContext):
			ctx = context
		else:
			ctx = RuleContext(context, policy)

		for index, rule in enumerate(self.deny_rules):
			if self._evaluate(rule, index, obj, subject, ctx):
				return False

		for index, rule in enumerate(self.allow_rules):
			if self._evaluate(rule, index, obj, subject, ctx):
				return True

		# Default deny
		return False

	def freeze(self):
		self._frozen = True

	def _add(self, rule: Rule):
		if self._frozen:
			raise PolicyFrozenError(
				f"Cannot add rules to permission {self.name!r}: policy is registered"
			)
		self._rules.append(rule)

	def _evaluate(
		self,
		rule: Rule,
		index: int,
		obj: Any,
		subject: Any,
		ctx: RuleContext,
	) -> bool:
		try:
			return bool(rule.predicate(obj, subject, ctx))
		except Exception as e:
			logger.error(
				f"Permission rule error: :{self.name} ({rule.effect.value} #{index} "
				f"{rule.label}) resource={display_name(obj)} "
				f"subject={display_name(subject)}: {type(e).__name__}: {e}"
			)
			return False

	@staticmethod
	def _relation_predicate(relation: str) -> Predicate:
		def has_relation(obj, subject, ctx):
			return ctx.has_relation(subject, relation, obj)
		return has_relation

	@staticmethod
	def _where_predicate(builder: ConditionBuilder) -> Predicate:
		def matches_conditions(obj, subject, ctx):
			return any(
				record_matches(obj, conditions)
				for conditions in _as_condition_list(builder(subject, ctx))
			)
		return matches_conditions

	def __repr__(self):
		return f"Permission({self.name}: {len(self._rules)} rules)"


def _as_condition_list(value: Any) -> list[dict]:
	if not value:
		return []
	if isinstance(value, Mapping):
		return [dict(value)]
	return [dict(v) for v in value if v]
