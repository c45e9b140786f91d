# (c) Copyright Datacraft, 2026
"""Declarative attribute conditions usable both at runtime and as SQL."""
from typing import Any, Iterable, Mapping

from sqlalchemy import and_, or_
from sqlalchemy.orm import RelationshipProperty

from authz_engine.exceptions import ConfigurationError

_MEMBERSHIP = (list, tuple, set, frozenset)


def record_matches(record: Any, conditions: Mapping[str, Any] | None) -> bool:
	"""
	Check a record against a condition dict.

	Values are matched by equality, list-like values by membership and
	nested dicts against the related object (any element for collections).
	"""
	if not conditions:
		return True

	for key, expected in conditions.items():
		if not hasattr(record, key):
			return False
		value = getattr(record, key)

		if isinstance(expected, Mapping):
			if value is None:
				return False
			if isinstance(value, _MEMBERSHIP):
				if not any(record_matches(item, expected) for item in value):
					return False
			elif not record_matches(value, expected):
				return False
		elif isinstance(expected, _MEMBERSHIP):
			if value not in expected:
				return False
		elif value != expected:
			return False

	return True


def build_criterion(model: type, condition_sets: Iterable[Mapping[str, Any]]):
	"""
	SQL criterion for a mapped class: OR between condition dicts, AND
	within one. Returns ``None`` when there is nothing to filter on.
	"""
	clauses = [
		_criterion_for(model, conditions)
		for conditions in condition_sets
		if conditions
	]
	if not clauses:
		return None
	return or_(*clauses)


def _criterion_for(model: type, conditions: Mapping[str, Any]):
	parts = []
	for key, expected in conditions.items():
		attr = getattr(model, key, None)
		if attr is None:
			raise ConfigurationError(f"{model.__name__} has no attribute {key!r}")

		if isinstance(expected, Mapping):
			prop = getattr(attr, 'property', None)
			if not isinstance(prop, RelationshipProperty):
				raise ConfigurationError(
					f"{model.__name__}.{key} is not a relationship"
				)
			inner = _criterion_for(prop.mapper.class_, expected)
			parts.append(attr.any(inner) if prop.uselist else attr.has(inner))
		elif isinstance(expected, _MEMBERSHIP):
			parts.append(attr.in_(list(expected)))
		else:
			parts.append(attr == expected)

	return and_(*parts)
