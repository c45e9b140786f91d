# (c) Copyright Datacraft, 2026
"""
Relation tuples kept in step with model lifecycle.

A rule ties a mapped class to relations: saving a record grants them to
the record's subject, deleting the record revokes them.

Example:
	grants = RelationGrants(cache=engine.cache)
	grants.grants_relation(Document, 'owner', to='owner')
	grants.grants_relation(
		Collaboration, 'viewer', 'editor',
		to='user', on='document',
		selector=lambda c: c.permissions.split(','),
	)
	grants.listen(SessionLocal)

Tuples are written on the flushing session's connection, so they commit
or roll back together with the record. Cached decisions are evicted after
the commit.
"""
import logging
from typing import Any, Callable, Iterable

from sqlalchemy import event
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import RelationshipDirection, Session

from authz_engine.exceptions import ConfigurationError
from authz_engine.identity import id_of, type_name
from authz_engine.rebac.tuples import RelationshipStore, TupleKey

logger = logging.getLogger(__name__)

GRANT = 'grant'
REVOKE = 'revoke'

_DELETED = 'authz_grants_deleted'
_PENDING = 'authz_grants_pending'

Selector = Callable[[Any], Iterable[str]]
Operation = tuple[str, TupleKey]


class GrantRule:
	"""
	Relations granted by a model to the target of one of its associations.

	to and on name many-to-one relationships of model. The subject is the
	target of to, the object is the target of on or the record itself.
	Without a selector the first relation is granted and moves with the
	foreign key of to. With a selector, the relations it returns are
	granted and the other declared relations are revoked.
	"""

	def __init__(
		self,
		model: type,
		relations: Iterable[str],
		to: str,
		on: str | None = None,
		selector: Selector | None = None,
	):
		self.model = model
		self.relations = tuple(str(r) for r in relations)
		if not self.relations:
			raise ConfigurationError(f"{model.__name__}: grants_relation needs a relation")
		self.to = to
		self.on = on
		self.selector = selector

		self._subject = _association(model, to)
		self._object = _association(model, on) if on is not None else None

	def saved(self, record: Any) -> list[Operation]:
		subject_type, subject_key = self._subject
		subject_id = _current(record, subject_key)
		previous_id = _previous(record, subject_key)
		obj = self._object_of(record)
		if obj is None:
			return []

		operations = []
		if self.selector is not None:
			if previous_id is not None and previous_id != subject_id:
				for relation in self.relations:
					operations.append((REVOKE, self._key(subject_type, previous_id, relation, obj)))
			if subject_id is None:
				return operations
			active = [str(r) for r in self.selector(record) or ()]
			for relation in active:
				operations.append((GRANT, self._key(subject_type, subject_id, relation, obj)))
			for relation in self.relations:
				if relation not in active:
					operations.append((REVOKE, self._key(subject_type, subject_id, relation, obj)))
			return operations

		relation = self.relations[0]
		if previous_id is not None and previous_id != subject_id:
			operations.append((REVOKE, self._key(subject_type, previous_id, relation, obj)))
		if subject_id is not None:
			operations.append((GRANT, self._key(subject_type, subject_id, relation, obj)))
		return operations

	def deleted(self, record: Any) -> list[Operation]:
		subject_type, subject_key = self._subject
		subject_id = _committed(record, subject_key)
		obj = self._object_of(record, committed=True)
		if subject_id is None or obj is None:
			return []
		return [
			(REVOKE, self._key(subject_type, subject_id, relation, obj))
			for relation in self.relations
		]

	def _object_of(self, record: Any, committed: bool = False) -> tuple[str, str] | None:
		if self._object is None:
			return type_name(record), id_of(record)

		object_type, object_key = self._object
		read = _committed if committed else _current
		object_id = read(record, object_key)
		if object_id is None:
			return None
		return object_type, object_id

	@staticmethod
	def _key(subject_type: str, subject_id: Any, relation: str, obj: tuple[str, str]) -> TupleKey:
		return TupleKey(
			subject_type=subject_type,
			subject_id=str(subject_id),
			relation=relation,
			object_type=obj[0],
			object_id=str(obj[1]),
		)

	def __repr__(self):
		return f"GrantRule({self.model.__name__}, {self.relations}, to={self.to!r}, on={self.on!r})"


class RelationGrants:
	"""Registry of grant rules and the session hooks applying them."""

	def __init__(self, cache=None, created_by: str | None = None):
		self.cache = cache
		self.created_by = created_by
		self.rules: list[GrantRule] = []

	def grants_relation(
		self,
		model: type,
		*relations: str,
		to: str,
		on: str | None = None,
		selector: Selector | None = None,
	) -> GrantRule:
		rule = GrantRule(model, relations, to=to, on=on, selector=selector)
		self.rules.append(rule)
		logger.debug(f"Registered {rule!r}")
		return rule

	def rules_for(self, record: Any) -> list[GrantRule]:
		return [rule for rule in self.rules if isinstance(record, rule.model)]

	def listen(self, target: Any) -> None:
		"""Attach to a Session class, sessionmaker or session."""
		event.listen(target, 'before_flush', self.before_flush)
		event.listen(target, 'after_flush', self.after_flush)
		event.listen(target, 'after_commit', self.after_commit)
		event.listen(target, 'after_rollback', self.after_rollback)

	def remove(self, target: Any) -> None:
		event.remove(target, 'before_flush', self.before_flush)
		event.remove(target, 'after_flush', self.after_flush)
		event.remove(target, 'after_commit', self.after_commit)
		event.remove(target, 'after_rollback', self.after_rollback)

	# Session hooks

	def before_flush(self, session: Session, flush_context, instances) -> None:
		# deleted rows can't be loaded after the flush
		operations = []
		for record in session.deleted:
			for rule in self.rules_for(record):
				operations.extend(rule.deleted(record))
		if operations:
			session.info.setdefault(_DELETED, []).extend(operations)

	def after_flush(self, session: Session, flush_context) -> None:
		operations = session.info.pop(_DELETED, [])
		for record in session.new:
			for rule in self.rules_for(record):
				operations.extend(rule.saved(record))
		for record in session.dirty:
			rules = self.rules_for(record)
			if rules and session.is_modified(record):
				for rule in rules:
					operations.extend(rule.saved(record))

		if not operations:
			return

		connection = session.connection()
		changed = []
		for action, key in operations:
			if action == GRANT:
				if RelationshipStore.grant_on(connection, key, created_by=self.created_by):
					logger.debug(f"Granted {key}")
					changed.append(key)
			elif RelationshipStore.revoke_on(connection, key):
				logger.debug(f"Revoked {key}")
				changed.append(key)

		if changed:
			session.info.setdefault(_PENDING, []).extend(changed)

	def after_commit(self, session: Session) -> None:
		changed = session.info.pop(_PENDING, [])
		if self.cache is None:
			return
		for key in dict.fromkeys(changed):
			self.cache.invalidate_relationship(key.subject_ref, key.object_ref)

	def after_rollback(self, session: Session) -> None:
		session.info.pop(_DELETED, None)
		session.info.pop(_PENDING, None)


def _association(model: type, name: str) -> tuple[str, str]:
	"""Target type tag and foreign key attribute of a many-to-one relationship."""
	mapper = sa_inspect(model, raiseerr=False)
	if mapper is None:
		raise ConfigurationError(f"{model.__name__} is not a mapped class")
	if name not in mapper.relationships:
		raise ConfigurationError(f"{model.__name__}.{name} is not a relationship")

	prop = mapper.relationships[name]
	if prop.direction is not RelationshipDirection.MANYTOONE or len(prop.local_columns) != 1:
		raise ConfigurationError(
			f"{model.__name__}.{name} must be a many-to-one relationship on one column"
		)
	column = next(iter(prop.local_columns))
	return type_name(prop.mapper.class_), mapper.get_property_by_column(column).key


def _current(record: Any, key: str) -> Any:
	return sa_inspect(record).attrs[key].value


def _previous(record: Any, key: str) -> Any:
	history = sa_inspect(record).attrs[key].history
	for value in history.deleted or ():
		if value is not None:
			return value
	return None


def _committed(record: Any, key: str) -> Any:
	previous = _previous(record, key)
	return previous if previous is not None else _current(record, key)
