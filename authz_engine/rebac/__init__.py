# (c) Copyright Datacraft, 2026
"""Relationship-Based Access Control (ReBAC) - tuple store and relation graph."""
from .tuples import RelationTuple, RelationshipStore, TupleKey
from .graph import RelationDeclaration, RelationSchema, RelationshipChecker

__all__ = [
	'RelationTuple',
	'RelationshipStore',
	'TupleKey',
	'RelationDeclaration',
	'RelationSchema',
	'RelationshipChecker',
]
