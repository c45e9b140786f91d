# (c) Copyright Datacraft, 2026
"""Relationship tuples storage and management."""
import logging
import uuid
from datetime import datetime
from typing import Any, Iterable
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from sqlalchemy import (
	Connection, String, Index, UniqueConstraint, Uuid, DateTime, func, select, delete,
	insert, and_,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, mapped_column, Session

from authz_engine.db.base import Base
from authz_engine.exceptions import MissingFilterError
from authz_engine.identity import ResourceRef, id_of, type_name

logger = logging.getLogger(__name__)


class RelationTuple(Base):
	"""
	A single relationship fact: subject holds relation on object.

	Textual form: object_type:object_id#relation@subject_type:subject_id
	Example: Document:7#editor@User:42
	"""

	__tablename__ = "authz_relation_tuples"

	id: Mapped[UUID] = mapped_column(
		Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
	)

	# Subject (who holds the relation)
	subject_type: Mapped[str] = mapped_column(String(100), nullable=False)
	subject_id: Mapped[str] = mapped_column(String(100), nullable=False)

	relation: Mapped[str] = mapped_column(String(50), nullable=False)

	# Object (what the relation is held on)
	object_type: Mapped[str] = mapped_column(String(100), nullable=False)
	object_id: Mapped[str] = mapped_column(String(100), nullable=False)

	# Audit
	created_at: Mapped[datetime] = mapped_column(
		DateTime(timezone=True), server_default=func.now()
	)
	created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

	__table_args__ = (
		UniqueConstraint(
			"subject_type", "subject_id", "relation",
			"object_type", "object_id",
			name="uq_authz_relation_tuple"
		),
		Index(
			"idx_authz_tuple_object_relation",
			"object_type", "object_id", "relation"
		),
		Index("idx_authz_tuple_subject", "subject_type", "subject_id"),
		Index("idx_authz_tuple_relation", "relation"),
	)

	@property
	def key(self) -> "TupleKey":
		return TupleKey(
			subject_type=self.subject_type,
			subject_id=self.subject_id,
			relation=self.relation,
			object_type=self.object_type,
			object_id=self.object_id,
		)

	def __repr__(self):
		return f"RelationTuple({self.key})"


class TupleKey(BaseModel):
	"""Lightweight, hashable identity of a tuple."""
	model_config = ConfigDict(frozen=True)

	subject_type: str
	subject_id: str
	relation: str
	object_type: str
	object_id: str

	@classmethod
	def of(cls, subject: Any, relation: str, obj: Any) -> "TupleKey":
		return cls(
			subject_type=type_name(subject),
			subject_id=id_of(subject),
			relation=str(relation),
			object_type=type_name(obj),
			object_id=id_of(obj),
		)

	@classmethod
	def parse(cls, tuple_str: str) -> "TupleKey":
		"""
		Parse tuple from string format.

		Format: object_type:object_id#relation@subject_type:subject_id
		"""
		try:
			object_part, subject_part = tuple_str.split('@', 1)
			obj_main, relation = object_part.split('#', 1)
			object_type, object_id = obj_main.split(':', 1)
			subject_type, subject_id = subject_part.split(':', 1)
		except ValueError:
			raise ValueError(f"Malformed relation tuple: {tuple_str!r}")

		return cls(
			subject_type=subject_type,
			subject_id=subject_id,
			relation=relation,
			object_type=object_type,
			object_id=object_id,
		)

	@property
	def subject_ref(self) -> ResourceRef:
		return ResourceRef(self.subject_type, self.subject_id)

	@property
	def object_ref(self) -> ResourceRef:
		return ResourceRef(self.object_type, self.object_id)

	def where(self):
		return and_(
			RelationTuple.subject_type == self.subject_type,
			RelationTuple.subject_id == self.subject_id,
			RelationTuple.relation == self.relation,
			RelationTuple.object_type == self.object_type,
			RelationTuple.object_id == self.object_id,
		)

	def __str__(self):
		return (
			f"{self.object_type}:{self.object_id}#{self.relation}"
			f"@{self.subject_type}:{self.subject_id}"
		)


def for_subject(subject: Any):
	return and_(
		RelationTuple.subject_type == type_name(subject),
		RelationTuple.subject_id == id_of(subject),
	)


def for_object(obj: Any):
	return and_(
		RelationTuple.object_type == type_name(obj),
		RelationTuple.object_id == id_of(obj),
	)


class RelationshipStore:
	"""
	Store and query relationship tuples.

	Owns every tuple: all mutations go through this class, and each one
	that changes data evicts the affected decisions from the cache after
	the commit.
	"""

	def __init__(self, db: Session, cache=None):
		self.db = db
		self.cache = cache

	def grant(
		self,
		subject: Any,
		relation: str,
		obj: Any,
		created_by: str | None = None,
	) -> RelationTuple:
		"""Create the tuple, or return it if it already exists."""
		key = TupleKey.of(subject, relation, obj)

		tuple_ = self._find(key)
		if tuple_ is None:
			tuple_ = RelationTuple(
				subject_type=key.subject_type,
				subject_id=key.subject_id,
				relation=key.relation,
				object_type=key.object_type,
				object_id=key.object_id,
				created_by=created_by,
			)
			self.db.add(tuple_)
			try:
				self.db.commit()
			except IntegrityError:
				# Inserted concurrently
				self.db.rollback()
				tuple_ = self._find(key)
				if tuple_ is None:
					raise
			else:
				logger.debug(f"Granted {key}")

		self._invalidate(subject, obj)
		return tuple_

	def revoke(self, subject: Any, relation: str, obj: Any) -> int:
		"""Delete the exact tuple. Returns the number of deleted rows."""
		key = TupleKey.of(subject, relation, obj)
		result = self.db.execute(delete(RelationTuple).where(key.where()))
		self.db.commit()

		count = result.rowcount or 0
		if count > 0:
			logger.debug(f"Revoked {key}")
			self._invalidate(subject, obj)
		return count

	def revoke_all(self, subject: Any = None, obj: Any = None) -> int:
		"""Delete all tuples of a subject, of an object, or between both."""
		if subject is None and obj is None:
			raise MissingFilterError(
				"revoke_all requires at least one of subject or obj"
			)

		stmt = delete(RelationTuple)
		if subject is not None:
			stmt = stmt.where(for_subject(subject))
		if obj is not None:
			stmt = stmt.where(for_object(obj))

		result = self.db.execute(stmt)
		self.db.commit()

		count = result.rowcount or 0
		if count > 0:
			self._invalidate(subject, obj)
		return count

	def exists(self, subject: Any, relation: str, obj: Any) -> bool:
		"""Exact-match check, no hierarchy."""
		return self.exists_any(subject, [relation], obj)

	def exists_any(self, subject: Any, relations: Iterable[str], obj: Any) -> bool:
		relations = [str(r) for r in relations]
		if not relations:
			return False
		stmt = select(RelationTuple.id).where(
			for_subject(subject),
			for_object(obj),
			RelationTuple.relation.in_(relations),
		).limit(1)
		return self.db.scalar(stmt) is not None

	def relations_between(self, subject: Any, obj: Any) -> set[str]:
		stmt = select(RelationTuple.relation).where(
			for_subject(subject),
			for_object(obj),
		).distinct()
		return set(self.db.scalars(stmt))

	def objects_with(
		self,
		subject: Any,
		relation: str,
		object_type: Any = None,
	) -> list[RelationTuple]:
		"""Tuples where subject holds relation, optionally of one object type."""
		return self.read(
			subject_type=type_name(subject),
			subject_ids=[id_of(subject)],
			relations=[relation],
			object_type=type_name(object_type) if object_type is not None else None,
		)

	def subjects_with(
		self,
		relation: str,
		obj: Any,
		subject_type: Any = None,
	) -> list[RelationTuple]:
		"""Tuples where some subject holds relation on obj."""
		return self.read(
			subject_type=type_name(subject_type) if subject_type is not None else None,
			relations=[relation],
			object_type=type_name(obj),
			object_ids=[id_of(obj)],
		)

	def read(
		self,
		subject_type: str | None = None,
		subject_ids: Iterable[str] | None = None,
		relations: Iterable[str] | None = None,
		object_type: str | None = None,
		object_ids: Iterable[str] | None = None,
	) -> list[RelationTuple]:
		"""Read tuples matching the filters."""
		stmt = self._filtered(
			select(RelationTuple),
			subject_type, subject_ids, relations, object_type, object_ids,
		).order_by(RelationTuple.created_at, RelationTuple.object_id)
		return list(self.db.scalars(stmt))

	def read_object_ids(
		self,
		subject_type: str | None = None,
		subject_ids: Iterable[str] | None = None,
		relations: Iterable[str] | None = None,
		object_type: str | None = None,
	) -> set[str]:
		stmt = self._filtered(
			select(RelationTuple.object_id).distinct(),
			subject_type, subject_ids, relations, object_type, None,
		)
		return set(self.db.scalars(stmt))

	def matches(
		self,
		subject_type: str | None = None,
		subject_ids: Iterable[str] | None = None,
		relations: Iterable[str] | None = None,
		object_type: str | None = None,
		object_ids: Iterable[str] | None = None,
	) -> bool:
		"""True if at least one tuple matches the filters."""
		stmt = self._filtered(
			select(RelationTuple.id),
			subject_type, subject_ids, relations, object_type, object_ids,
		).limit(1)
		return self.db.scalar(stmt) is not None

	def count(self) -> int:
		return self.db.scalar(select(func.count()).select_from(RelationTuple))

	def _filtered(
		self,
		stmt,
		subject_type: str | None,
		subject_ids: Iterable[str] | None,
		relations: Iterable[str] | None,
		object_type: str | None,
		object_ids: Iterable[str] | None,
	):
		if subject_type:
			stmt = stmt.where(RelationTuple.subject_type == subject_type)
		if subject_ids is not None:
			stmt = stmt.where(RelationTuple.subject_id.in_([str(i) for i in subject_ids]))
		if relations is not None:
			stmt = stmt.where(RelationTuple.relation.in_([str(r) for r in relations]))
		if object_type:
			stmt = stmt.where(RelationTuple.object_type == object_type)
		if object_ids is not None:
			stmt = stmt.where(RelationTuple.object_id.in_([str(i) for i in object_ids]))
		return stmt

	@staticmethod
	def grant_on(connection: Connection, key: TupleKey, created_by: str | None = None) -> bool:
		"""
		Insert key on connection unless present, without committing.

		Used by flush hooks, which run inside the caller's transaction and
		evict cached decisions themselves once it commits.
		"""
		if connection.scalar(select(RelationTuple.id).where(key.where())) is not None:
			return False
		connection.execute(
			insert(RelationTuple).values(**key.model_dump(), created_by=created_by)
		)
		return True

	@staticmethod
	def revoke_on(connection: Connection, key: TupleKey) -> int:
		return connection.execute(delete(RelationTuple).where(key.where())).rowcount

	def _find(self, key: TupleKey) -> RelationTuple | None:
		return self.db.scalar(select(RelationTuple).where(key.where()))

	def _invalidate(self, subject: Any, obj: Any) -> None:
		if self.cache is not None:
			self.cache.invalidate_relationship(subject, obj)
