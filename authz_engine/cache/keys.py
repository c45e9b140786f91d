# (c) Copyright Datacraft, 2026
"""Cache key construction for authorization decisions."""
import hashlib
import json
import threading
from typing import Any

from authz_engine.identity import (
	has_stable_id, id_of, resource_key, subject_key, type_name,
)

NO_CONTEXT = "no_context"
INLINE_CONTEXT_LIMIT = 3

_PRIMITIVES = (str, int, float, bool, type(None))

# Bracket sets read the same in fnmatch and in Redis SCAN MATCH.
_GLOB_ESCAPES = str.maketrans({
	'[': '[[]',
	'*': '[*]',
	'?': '[?]',
	'\\': '[\\\\]',
})


class CacheKeyBuilder:
	"""
	Builds deterministic cache keys.

	Keys for the common case (no context, subject and object with stable ids)
	are memoized in-process. The memo only saves string formatting, it holds
	no authorization state.
	"""

	def __init__(self, prefix: str = "authz"):
		self.prefix = prefix
		self._memo: dict[tuple, str] = {}
		self._memo_lock = threading.Lock()

	def permission_key(
		self,
		subject: Any,
		action: str,
		obj: Any,
		context: dict | None = None,
	) -> str:
		action = str(action)
		if self._simple_case(subject, obj, context):
			memo_key = (
				'permission', type_name(subject), id_of(subject),
				action, type_name(obj), id_of(obj),
			)
			return self._memoized(
				memo_key,
				lambda: self._build('permission', subject, action, obj, context),
			)
		return self._build('permission', subject, action, obj, context)

	def all_permissions_key(
		self,
		subject: Any,
		obj: Any,
		context: dict | None = None,
	) -> str:
		if self._simple_case(subject, obj, context):
			memo_key = (
				'all_permissions', type_name(subject), id_of(subject),
				type_name(obj), id_of(obj),
			)
			return self._memoized(
				memo_key,
				lambda: self._build('all_permissions', subject, None, obj, context),
			)
		return self._build('all_permissions', subject, None, obj, context)

	def policy_key(self, resource_type: Any) -> str:
		return f"{self.prefix}:policy:{type_name(resource_type)}"

	def relation_scope_key(self, subject: Any, relation: str, object_type: Any) -> str:
		return ":".join([
			self.prefix, 'relation_scope', subject_key(subject),
			str(relation), type_name(object_type),
		])

	# Invalidation patterns (glob syntax, literal parts escaped)

	def pattern_all(self) -> str:
		return f"{glob_escape(self.prefix)}:*"

	def pattern_for_subject(self, subject: Any) -> str:
		return f"{glob_escape(self.prefix)}:*:{glob_escape(subject_key(subject))}:*"

	def pattern_for_resource(self, obj: Any) -> str:
		return f"{glob_escape(self.prefix)}:*:{glob_escape(resource_key(obj))}:*"

	def pattern_for_relation_scopes(self, object_type: Any) -> str:
		return (
			f"{glob_escape(self.prefix)}:relation_scope:*:"
			f"{glob_escape(type_name(object_type))}"
		)

	def context_key(self, context: dict | None) -> str:
		if not context:
			return NO_CONTEXT

		if len(context) <= INLINE_CONTEXT_LIMIT and all(
			isinstance(v, _PRIMITIVES) for v in context.values()
		):
			items = sorted((str(k), v) for k, v in context.items())
			return "ctx:" + ",".join(f"{k}={_render(v)}" for k, v in items)

		payload = json.dumps(
			{str(k): v for k, v in context.items()},
			sort_keys=True,
			default=str,
		)
		return hashlib.md5(payload.encode('utf-8')).hexdigest()

	def clear_memo(self):
		with self._memo_lock:
			self._memo = {}

	def _build(
		self,
		kind: str,
		subject: Any,
		action: str | None,
		obj: Any,
		context: dict | None,
	) -> str:
		parts = [self.prefix, kind, subject_key(subject)]
		if action is not None:
			parts.append(action)
		parts.append(resource_key(obj))
		parts.append(self.context_key(context))
		return ":".join(parts)

	def _memoized(self, memo_key: tuple, build) -> str:
		key = self._memo.get(memo_key)
		if key is not None:
			return key

		with self._memo_lock:
			key = self._memo.get(memo_key)
			if key is None:
				key = build()
				self._memo[memo_key] = key
			return key

	@staticmethod
	def _simple_case(subject: Any, obj: Any, context: dict | None) -> bool:
		return (
			not context
			and not isinstance(obj, type)
			and has_stable_id(obj)
			and has_stable_id(subject)
		)


def _render(value: Any) -> str:
	if value is None:
		return "null"
	if isinstance(value, bool):
		return "true" if value else "false"
	return str(value)


def glob_escape(text: str) -> str:
	"""Escape glob metacharacters so text only matches itself."""
	return text.translate(_GLOB_ESCAPES)
