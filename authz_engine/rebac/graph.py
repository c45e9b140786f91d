# (c) Copyright Datacraft, 2026
"""Relation schema and relationship graph traversal."""
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from authz_engine.exceptions import (
	ConfigurationError, PolicyFrozenError, RelationCycleError,
)
from authz_engine.identity import id_of, type_name

from .tuples import RelationTuple, RelationshipStore

logger = logging.getLogger(__name__)


@dataclass
class RelationDeclaration:
	"""
	Declaration of a relation on a resource type.

	- requires: relations this one implies. "editor requires viewer" means
	  holding editor satisfies a check for viewer.
	- via: single-hop indirect paths {local relation: intermediary type}.
	  viewer via {member: Team} means a subject that is a member of a Team
	  holding viewer on the object is a viewer too.
	"""
	name: str
	requires: list[str] = field(default_factory=list)
	via: dict[str, str] = field(default_factory=dict)


class RelationSchema:
	"""
	Relation table of one resource type.

	Declarations for the same relation name accumulate: requires and via
	are merged, never replaced.
	"""

	def __init__(self):
		self._declarations: dict[str, RelationDeclaration] = {}
		self._implied_by: dict[str, set[str]] = {}
		self._frozen = False

	def declare(
		self,
		name: str,
		requires: Iterable[str] = (),
		via: Mapping[str, Any] | None = None,
	) -> RelationDeclaration:
		"""Declare (or extend) a relation."""
		if self._frozen:
			raise PolicyFrozenError(
				f"Cannot declare relation {name!r}: schema is registered"
			)

		name = str(name)
		requires = [str(r) for r in requires]
		via = {str(local): type_name(target) for local, target in (via or {}).items()}

		for required in requires:
			path = self._implication_path(required, name)
			if path is not None:
				raise RelationCycleError(name, [name] + path)

		declaration = self._declarations.get(name)
		for local, target in via.items():
			known = declaration.via.get(local) if declaration else None
			if known is not None and known != target:
				raise ConfigurationError(
					f"Relation {name!r} already declares via {local!r} -> {known!r}"
				)

		if declaration is None:
			declaration = RelationDeclaration(name=name)
			self._declarations[name] = declaration

		for required in requires:
			if required not in declaration.requires:
				declaration.requires.append(required)
			self._implied_by.setdefault(required, set()).add(name)
		declaration.via.update(via)

		return declaration

	def effective_relations(self, name: str) -> frozenset[str]:
		"""
		Relations whose direct possession satisfies a check for name.

		Transitive closure over the inverted requires edges, always
		including name itself. Undeclared names yield only themselves.
		"""
		name = str(name)
		visited = {name}
		pending = [name]
		while pending:
			current = pending.pop()
			for implying in self._implied_by.get(current, ()):
				if implying not in visited:
					visited.add(implying)
					pending.append(implying)
		return frozenset(visited)

	def via_paths_for(self, name: str) -> dict[str, str]:
		declaration = self._declarations.get(str(name))
		return dict(declaration.via) if declaration else {}

	def declaration(self, name: str) -> RelationDeclaration | None:
		return self._declarations.get(str(name))

	@property
	def relations(self) -> list[str]:
		return list(self._declarations)

	@property
	def frozen(self) -> bool:
		return self._frozen

	def freeze(self):
		self._frozen = True

	def _implication_path(self, start: str, target: str) -> list[str] | None:
		"""requires-path from start to target, if start implies target."""
		if start == target:
			return [start]
		visited = {start}
		pending = [(start, [start])]
		while pending:
			current, path = pending.pop()
			declaration = self._declarations.get(current)
			for required in declaration.requires if declaration else ():
				if required == target:
					return path + [required]
				if required not in visited:
					visited.add(required)
					pending.append((required, path + [required]))
		return None

	def __contains__(self, name: str) -> bool:
		return str(name) in self._declarations

	def __len__(self) -> int:
		return len(self._declarations)

	def __bool__(self) -> bool:
		return bool(self._declarations)


class RelationshipChecker:
	"""
	Graph-aware relationship queries.

	Resolves the relation schema of an object's type through the policy
	registry and answers checks with:
	- direct tuple lookup over the effective relation set
	- one-hop via traversal through intermediary objects
	"""

	def __init__(self, store: RelationshipStore, registry):
		self.store = store
		self.registry = registry

	def schema_for(self, object_type: Any) -> RelationSchema | None:
		schema = self.registry.schema_for(type_name(object_type))
		return schema if schema else None

	def effective_relations(self, object_type: Any, relation: str) -> frozenset[str]:
		schema = self.schema_for(object_type)
		if schema is None:
			return frozenset([str(relation)])
		return schema.effective_relations(relation)

	def has_relation(self, subject: Any, relation: str, obj: Any) -> bool:
		"""Check whether subject holds relation on obj, directly or implied."""
		schema = self.schema_for(obj)
		if schema is None:
			return self.store.exists(subject, relation, obj)

		effective = schema.effective_relations(relation)
		if self.store.exists_any(subject, effective, obj):
			return True

		object_type = type_name(obj)
		object_id = id_of(obj)
		for intermediary_type, intermediary_ids in self._intermediaries(
			subject, schema, effective,
		):
			if self.store.matches(
				subject_type=intermediary_type,
				subject_ids=intermediary_ids,
				relations=effective,
				object_type=object_type,
				object_ids=[object_id],
			):
				logger.debug(
					f"{relation} on {object_type}:{object_id} satisfied via {intermediary_type}"
				)
				return True

		return False

	def objects_with_effective(
		self,
		subject: Any,
		relation: str,
		object_type: Any,
	) -> list[RelationTuple]:
		"""
		Tuples where subject holds relation or any relation implying it.

		The hierarchy is per object type, so object_type is required.
		"""
		if object_type is None:
			raise ConfigurationError("objects_with_effective needs an object type")

		return self.store.read(
			subject_type=type_name(subject),
			subject_ids=[id_of(subject)],
			relations=self.effective_relations(object_type, relation),
			object_type=type_name(object_type),
		)

	def object_ids_for_relation(
		self,
		subject: Any,
		relation: str,
		object_type: Any,
	) -> set[str]:
		"""Ids of objects of object_type on which subject holds relation."""
		object_type = type_name(object_type)
		effective = self.effective_relations(object_type, relation)

		ids = self.store.read_object_ids(
			subject_type=type_name(subject),
			subject_ids=[id_of(subject)],
			relations=effective,
			object_type=object_type,
		)

		schema = self.schema_for(object_type)
		if schema is None:
			return ids

		for intermediary_type, intermediary_ids in self._intermediaries(
			subject, schema, effective,
		):
			ids |= self.store.read_object_ids(
				subject_type=intermediary_type,
				subject_ids=intermediary_ids,
				relations=effective,
				object_type=object_type,
			)
		return ids

	def _intermediaries(
		self,
		subject: Any,
		schema: RelationSchema,
		effective: Iterable[str],
	):
		"""Yield (intermediary type, ids) reachable from subject by via paths."""
		paths: dict[tuple[str, str], None] = {}
		for relation in sorted(effective):
			for local, intermediary_type in schema.via_paths_for(relation).items():
				paths[(local, intermediary_type)] = None

		for local, intermediary_type in paths:
			local_relations = self.effective_relations(intermediary_type, local)
			intermediary_ids = self.store.read_object_ids(
				subject_type=type_name(subject),
				subject_ids=[id_of(subject)],
				relations=local_relations,
				object_type=intermediary_type,
			)
			if intermediary_ids:
				yield intermediary_type, intermediary_ids
