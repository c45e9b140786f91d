# (c) Copyright Datacraft, 2026
"""Stable identity extraction for subjects and resources."""
from dataclasses import dataclass
from typing import Any

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable


@dataclass(frozen=True)
class ResourceRef:
	"""Type tag and id standing in for an object that is not loaded."""

	resource_type: str
	id: str

	@property
	def __resource_type__(self) -> str:
		return self.resource_type


def type_name(value: Any) -> str:
	"""
	Type tag of a subject, resource or resource class.

	An explicit ``__resource_type__`` attribute wins over the class name,
	strings are taken to already be type tags.
	"""
	if isinstance(value, str):
		return value
	tag = getattr(value, '__resource_type__', None)
	if isinstance(tag, str) and tag:
		return tag
	if isinstance(value, type):
		return value.__name__
	return type(value).__name__


def id_of(obj: Any) -> str:
	"""
	Identifier of an object, rendered as text.

	Objects with neither an ``id`` nor a persistent identity fall back to
	``id(obj)``, which is only unique while obj is alive. Check
	has_stable_id before using the result as a durable key.
	"""
	ident = getattr(obj, 'id', None)
	if ident is not None:
		return str(ident)

	identity = _identity(obj)
	if identity:
		return '-'.join(str(part) for part in identity)

	return str(id(obj))


def has_stable_id(obj: Any) -> bool:
	if obj is None:
		return False
	return getattr(obj, 'id', None) is not None or bool(_identity(obj))


def subject_key(subject: Any) -> str:
	if subject is None:
		return "sub:nil"
	return f"sub:{type_name(subject)}:{id_of(subject)}"


def resource_key(resource: Any) -> str:
	if resource is None:
		return "nil"
	if isinstance(resource, type):
		return f"class:{type_name(resource)}"
	return f"{type_name(resource)}:{id_of(resource)}"


def display_name(obj: Any) -> str:
	"""Human-readable name: "nil", "Document#7" or "Document"."""
	if obj is None:
		return "nil"
	if isinstance(obj, type):
		return type_name(obj)
	if getattr(obj, 'id', None) is not None:
		return f"{type_name(obj)}#{obj.id}"
	return type_name(obj)


def _identity(obj: Any) -> tuple | None:
	try:
		state = sa_inspect(obj)
	except NoInspectionAvailable:
		return None
	return getattr(state, 'identity', None)
