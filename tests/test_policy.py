# (c) Copyright Datacraft, 2026
import pytest
from sqlalchemy import select

from authz_engine.exceptions import ConfigurationError
from authz_engine.policy import Policy, build_criterion

from tests.models import Document


class TestPolicy:

	def test_declarations(self):
		policy = Policy(Document)
		policy.permission('view', relation='viewer')
		policy.permission('edit')
		policy.permission('destroy')

		assert policy.resource_type == 'Document'
		assert policy.resource_class is Document
		assert policy.name == 'DocumentPolicy'
		assert policy.available_permissions == ['view', 'edit', 'destroy']
		assert policy.get_permission('view').relation == 'viewer'
		assert policy.get_permission('publish') is None

	def test_relation_delegates_to_schema(self):
		policy = Policy('Folder')
		policy.relation('viewer')
		policy.relation('editor', requires=['viewer'])

		assert policy.schema.effective_relations('viewer') == {'viewer', 'editor'}

	def test_condition_and_relationship_decorators(self):
		policy = Policy('Folder')

		@policy.condition('is_owner')
		def is_owner(obj, subject, ctx):
			return obj.owner_id == subject.id

		policy.relationship('parent', lambda obj: obj.parent)

		assert policy.get_condition('is_owner') is is_owner
		assert policy.get_relationship('parent') is not None
		assert policy.get_condition('missing') is None

	def test_scope_declaration(self):
		policy = Policy(Document)
		config = policy.scope('view', relation='viewer')

		assert config.relation == 'viewer'
		assert config.where is None
		assert policy.get_scope('view') is config


class TestBuildCriterion:

	@pytest.fixture
	def documents(self, make_document, alice, bob):
		return {
			'roadmap': make_document("Roadmap", owner_id=alice.id),
			'budget': make_document("Budget", owner_id=bob.id, public=True),
			'notes': make_document("Notes", owner_id=bob.id),
		}

	def titles(self, db, criterion):
		return sorted(d.title for d in db.scalars(select(Document).where(criterion)))

	def test_or_of_condition_sets(self, db, documents, alice):
		criterion = build_criterion(Document, [{'owner_id': alice.id}, {'public': True}])

		assert self.titles(db, criterion) == ['Budget', 'Roadmap']

	def test_and_within_set(self, db, documents, bob):
		criterion = build_criterion(Document, [{'owner_id': bob.id, 'public': False}])

		assert self.titles(db, criterion) == ['Notes']

	def test_membership(self, db, documents):
		criterion = build_criterion(Document, [{'title': ['Notes', 'Budget']}])

		assert self.titles(db, criterion) == ['Budget', 'Notes']

	def test_nested_relationship(self, db, documents):
		criterion = build_criterion(Document, [{'owner': {'name': 'alice'}}])

		assert self.titles(db, criterion) == ['Roadmap']

	def test_nothing_to_filter(self):
		assert build_criterion(Document, []) is None
		assert build_criterion(Document, [{}]) is None

	def test_unknown_attribute(self):
		with pytest.raises(ConfigurationError):
			build_criterion(Document, [{'folder_id': 1}])

	def test_nested_on_column(self):
		with pytest.raises(ConfigurationError):
			build_criterion(Document, [{'title': {'name': 'x'}}])
