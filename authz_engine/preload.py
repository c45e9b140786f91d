# (c) Copyright Datacraft, 2026
"""Association preloading for batch permission checks."""
import logging
from collections import defaultdict
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.interfaces import MANYTOONE

logger = logging.getLogger(__name__)

# Associations permission rules commonly read
COMMON_ASSOCIATIONS = (
	'owner', 'user', 'creator', 'author',
	'collaborator', 'collaborators',
	'team', 'members', 'organization', 'workspace', 'project',
)


class AssociationPreloader:
	"""
	Prefetch hook for AuthorizationEngine.

	Loads the common associations and every many-to-one relationship of
	the given persistent objects with one SELECT ... IN per relationship,
	so rules reading them don't trigger a query per object.
	"""

	def __init__(self, session: Session, associations: Iterable[str] = COMMON_ASSOCIATIONS):
		self.session = session
		self.associations = set(associations)

	def __call__(self, objects: Iterable[Any]) -> None:
		for cls, identities in self._group(objects).items():
			try:
				self._preload(cls, identities)
			except Exception as e:
				logger.warning(f"Preloading {cls.__name__} associations failed: {e}")

	def relationships_for(self, cls: type) -> list[str]:
		mapper = sa_inspect(cls)
		return [
			rel.key for rel in mapper.relationships
			if rel.key in self.associations or rel.direction is MANYTOONE
		]

	def _preload(self, cls: type, identities: list[tuple]) -> None:
		names = self.relationships_for(cls)
		if not names:
			return

		mapper = sa_inspect(cls)
		if len(mapper.primary_key) != 1:
			return

		pk_attr = mapper.get_property_by_column(mapper.primary_key[0]).class_attribute
		stmt = select(cls).where(
			pk_attr.in_([identity[0] for identity in identities])
		).options(*[selectinload(getattr(cls, name)) for name in names])

		self.session.scalars(stmt).all()
		logger.debug(f"Preloaded {', '.join(names)} for {len(identities)} {cls.__name__}")

	@staticmethod
	def _group(objects: Iterable[Any]) -> dict[type, list[tuple]]:
		grouped = defaultdict(list)
		for obj in objects:
			state = sa_inspect(obj, raiseerr=False)
			identity = getattr(state, 'identity', None)
			if identity:
				grouped[type(obj)].append(identity)
		return grouped
