# (c) Copyright Datacraft, 2026
import pytest

from authz_engine.exceptions import (
	ConfigurationError, PolicyFrozenError, RelationCycleError,
)
from authz_engine.rebac import RelationSchema

from tests.models import Team


@pytest.fixture
def schema():
	schema = RelationSchema()
	schema.declare('viewer')
	schema.declare('editor', requires=['viewer'])
	schema.declare('owner', requires=['editor', 'viewer'])
	return schema


class TestEffectiveRelations:

	def test_hierarchy_closure(self, schema):
		assert schema.effective_relations('viewer') == {'viewer', 'editor', 'owner'}
		assert schema.effective_relations('editor') == {'editor', 'owner'}
		assert schema.effective_relations('owner') == {'owner'}

	def test_undeclared_relation_is_only_itself(self, schema):
		assert schema.effective_relations('commenter') == {'commenter'}
		assert schema.effective_relations('commenter') == RelationSchema().effective_relations('commenter')

	def test_always_contains_relation(self, schema):
		for name in ('viewer', 'editor', 'owner', 'unknown'):
			assert name in schema.effective_relations(name)


class TestDeclarations:

	def test_requires_are_merged(self, schema):
		schema.declare('editor', requires=['commenter'])

		assert schema.declaration('editor').requires == ['viewer', 'commenter']
		assert schema.effective_relations('commenter') == {'commenter', 'editor', 'owner'}

	def test_via_paths_are_merged(self):
		schema = RelationSchema()
		schema.declare('viewer', via={'member': Team})
		schema.declare('viewer', via={'admin': 'Organization'})

		assert schema.via_paths_for('viewer') == {'member': 'Team', 'admin': 'Organization'}

	def test_via_paths_empty_when_undeclared(self, schema):
		assert schema.via_paths_for('viewer') == {}
		assert schema.via_paths_for('nope') == {}

	def test_conflicting_via_rejected(self):
		schema = RelationSchema()
		schema.declare('viewer', via={'member': 'Team'})

		with pytest.raises(ConfigurationError):
			schema.declare('viewer', via={'member': 'Group'})

		assert schema.via_paths_for('viewer') == {'member': 'Team'}

	def test_cycle_rejected(self):
		schema = RelationSchema()
		schema.declare('a', requires=['b'])

		with pytest.raises(RelationCycleError) as exc_info:
			schema.declare('b', requires=['a'])

		assert exc_info.value.path == ['b', 'a', 'b']
		assert 'b' not in schema
		assert schema.effective_relations('a') == {'a'}

	def test_self_requirement_rejected(self):
		schema = RelationSchema()

		with pytest.raises(RelationCycleError):
			schema.declare('a', requires=['a'])

		assert len(schema) == 0

	def test_frozen_schema(self, schema):
		schema.freeze()

		with pytest.raises(PolicyFrozenError):
			schema.declare('commenter')
		assert schema.relations == ['viewer', 'editor', 'owner']
