# (c) Copyright Datacraft, 2026
"""Errors raised by the authorization engine."""
from typing import Any, Iterable

from .identity import display_name


class AuthzError(Exception):
	"""Base class for all engine errors."""


class ConfigurationError(AuthzError):
	"""The engine or a policy is misconfigured."""


class PolicyNotFound(ConfigurationError):
	"""No policy resolves for a resource type."""

	def __init__(self, resource_type: str, context: dict | None = None):
		self.resource_type = resource_type
		self.expected_policy_name = f"{resource_type}Policy"
		self.context = context or {}

		lines = [
			f"No policy found for {resource_type}",
			"",
			f"Expected policy: {self.expected_policy_name}",
			"",
			"To fix this:",
			f"  - Create a Policy({resource_type!r}) and declare its permissions",
			"  - Register it with PolicyRegistry.register()",
			"  - Or declare the type's parent with PolicyRegistry.declare_type()",
		]
		if self.context:
			lines += ["", f"Context: {self.context!r}"]
		super().__init__("\n".join(lines))


class ScopeNotSupported(ConfigurationError):
	"""The resource type has no enumerable collection to scope."""

	def __init__(self, resource_type: str):
		self.resource_type = resource_type
		super().__init__(
			f"{resource_type} must be a mapped SQLAlchemy class for scoping"
		)


class UnknownActionError(ConfigurationError):
	"""Neither a permission nor a scope is declared for an action."""

	def __init__(self, resource_type: str, action: str):
		self.resource_type = resource_type
		self.action = action
		super().__init__(
			f"{resource_type}Policy declares no permission or scope for {action!r}"
		)


class ScopeNotDeclared(ConfigurationError):
	"""A permission exists but nothing turns it into a query."""

	def __init__(self, resource_type: str, action: str):
		self.resource_type = resource_type
		self.action = action
		super().__init__(
			f"{resource_type}Policy cannot scope {action!r}: declare "
			f"policy.scope({action!r}, ...) or give the permission a relation "
			f"or an allow_where rule"
		)


class PolicyFrozenError(ConfigurationError):
	"""A registered policy cannot be changed."""


class RelationCycleError(ConfigurationError):
	"""A relation would imply itself through its ``requires`` chain."""

	def __init__(self, relation: str, path: list[str]):
		self.relation = relation
		self.path = path
		super().__init__(
			f"Relation {relation!r} would imply itself: {' -> '.join(path)}"
		)


class MissingFilterError(ConfigurationError):
	"""A bulk operation was called without any filter."""


class NotAuthorized(AuthzError):
	"""The subject may not perform the action on the object."""

	def __init__(
		self,
		subject: Any,
		action: str,
		obj: Any,
		available_permissions: Iterable[str] | None = None,
		context: dict | None = None,
	):
		self.subject = subject
		self.action = action
		self.obj = obj
		self.available_permissions = list(available_permissions or [])
		self.context = context or {}
		super().__init__(self._build_message())

	def _build_message(self) -> str:
		if self.available_permissions:
			perms = ", ".join(f":{p}" for p in self.available_permissions)
		else:
			perms = "none"

		msg = f"Not authorized to perform '{self.action}' on {display_name(self.obj)}"
		msg += f" (subject: {display_name(self.subject)}, available: {perms})"
		if self.context:
			msg += f"\nContext: {self.context!r}"
		return msg
