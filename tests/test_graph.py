# (c) Copyright Datacraft, 2026
import pytest

from authz_engine.exceptions import ConfigurationError
from authz_engine.rebac import RelationshipChecker, RelationshipStore

from tests.models import Document


@pytest.fixture
def store(db):
	return RelationshipStore(db)


@pytest.fixture
def checker(store, registry, document_policy):
	return RelationshipChecker(store, registry)


class TestHierarchy:

	def test_implied_relation(self, checker, store, alice, document):
		store.grant(alice, 'editor', document)

		assert checker.has_relation(alice, 'viewer', document)
		assert checker.has_relation(alice, 'editor', document)
		assert not checker.has_relation(alice, 'owner', document)

	def test_no_relation(self, checker, alice, document):
		assert not checker.has_relation(alice, 'viewer', document)

	def test_type_without_schema_is_exact(self, checker, store, alice, team):
		store.grant(alice, 'member', team)

		assert checker.schema_for(team) is None
		assert checker.has_relation(alice, 'member', team)
		assert not checker.has_relation(alice, 'admin', team)
		assert checker.effective_relations(team, 'member') == {'member'}


class TestViaPaths:

	def test_team_membership_grants_viewer(self, checker, store, alice, team, document):
		store.grant(team, 'viewer', document)
		assert not checker.has_relation(alice, 'viewer', document)

		store.grant(alice, 'member', team)
		assert checker.has_relation(alice, 'viewer', document)

	def test_team_holding_implying_relation(self, checker, store, alice, team, document):
		store.grant(alice, 'member', team)
		store.grant(team, 'editor', document)

		assert checker.has_relation(alice, 'viewer', document)

	def test_via_does_not_grant_other_relations(self, checker, store, alice, team, document):
		store.grant(alice, 'member', team)
		store.grant(team, 'viewer', document)

		assert not checker.has_relation(alice, 'editor', document)

	def test_membership_without_team_grant(self, checker, store, alice, team, document):
		store.grant(alice, 'member', team)

		assert not checker.has_relation(alice, 'viewer', document)


class TestListing:

	def test_objects_with_effective(self, checker, store, alice, document, make_document):
		other = make_document("Budget")
		store.grant(alice, 'editor', document)
		store.grant(alice, 'viewer', other)

		tuples = checker.objects_with_effective(alice, 'viewer', Document)
		assert {(t.object_id, t.relation) for t in tuples} == {
			(str(document.id), 'editor'),
			(str(other.id), 'viewer'),
		}

	def test_objects_with_effective_needs_type(self, checker, store, alice, document):
		store.grant(alice, 'editor', document)

		with pytest.raises(ConfigurationError):
			checker.objects_with_effective(alice, 'viewer', None)

	def test_object_ids_for_relation(self, checker, store, alice, team, document, make_document):
		shared = make_document("Shared")
		make_document("Hidden")
		store.grant(alice, 'owner', document)
		store.grant(alice, 'member', team)
		store.grant(team, 'viewer', shared)

		ids = checker.object_ids_for_relation(alice, 'viewer', Document)
		assert ids == {str(document.id), str(shared.id)}

		assert checker.object_ids_for_relation(alice, 'owner', Document) == {str(document.id)}
