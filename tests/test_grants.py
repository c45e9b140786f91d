# (c) Copyright Datacraft, 2026
import pytest

from authz_engine.exceptions import ConfigurationError
from authz_engine.grants import RelationGrants

from tests.models import Collaboration, Document, Team


@pytest.fixture
def grants(db, engine):
	grants = RelationGrants(cache=engine.cache)
	grants.listen(db)
	yield grants
	grants.remove(db)


@pytest.fixture
def owner_grants(grants):
	grants.grants_relation(Document, 'owner', to='owner')
	return grants


class TestGrantOnSave:

	def test_create_grants_relation(self, engine, owner_grants, alice, make_document):
		document = make_document("Plan", owner_id=alice.id)

		assert engine.relation_exists(alice, 'owner', document)
		assert engine.can(alice, 'destroy', document)

	def test_assigned_through_relationship(self, engine, db, owner_grants, alice):
		document = Document(title="Plan", owner=alice)
		db.add(document)
		db.commit()

		assert engine.relation_exists(alice, 'owner', document)

	def test_no_subject_no_tuple(self, engine, owner_grants, make_document):
		make_document("Orphan")

		assert engine.store.count() == 0

	def test_owner_change_moves_relation(self, engine, db, owner_grants, alice, bob, make_document):
		document = make_document("Plan", owner_id=alice.id)

		document.owner_id = bob.id
		db.commit()

		assert not engine.relation_exists(alice, 'owner', document)
		assert engine.relation_exists(bob, 'owner', document)
		assert engine.store.count() == 1

	def test_cached_decisions_evicted_on_commit(self, engine, db, owner_grants, alice, bob, make_document):
		document = make_document("Plan", owner_id=alice.id)
		assert engine.can(alice, 'destroy', document)
		assert not engine.can(bob, 'destroy', document)

		document.owner_id = bob.id
		db.commit()

		assert engine.can(bob, 'destroy', document)
		assert not engine.can(alice, 'destroy', document)

	def test_unrelated_records_ignored(self, engine, db, owner_grants):
		db.add(Team(name="ops"))
		db.commit()

		assert engine.store.count() == 0


class TestRevokeOnDelete:

	def test_delete_revokes(self, engine, db, owner_grants, alice, make_document):
		document = make_document("Plan", owner_id=alice.id)
		assert engine.can(alice, 'destroy', document)

		db.delete(document)
		db.commit()

		assert engine.store.count() == 0
		assert engine.keys.permission_key(alice, 'destroy', document) not in engine.cache.store.keys()

	def test_rollback_discards_tuples(self, engine, db, owner_grants, alice):
		document = Document(title="Plan", owner_id=alice.id)
		db.add(document)
		db.flush()
		assert engine.relation_exists(alice, 'owner', document)

		db.rollback()

		assert engine.store.count() == 0


class TestSelector:

	def test_selected_relations_follow_record(self, engine, db, grants, bob, document):
		grants.grants_relation(
			Collaboration, 'viewer', 'editor',
			to='user', on='document',
			selector=lambda c: c.permissions.split(','),
		)

		collaboration = Collaboration(
			document_id=document.id, user_id=bob.id, permissions="viewer,editor",
		)
		db.add(collaboration)
		db.commit()
		assert engine.relations_between(bob, document) == {'viewer', 'editor'}
		assert engine.can(bob, 'edit', document)

		collaboration.permissions = "viewer"
		db.commit()
		assert engine.relations_between(bob, document) == {'viewer'}
		assert not engine.can(bob, 'edit', document)

		db.delete(collaboration)
		db.commit()
		assert engine.relations_between(bob, document) == set()

	def test_subject_change_revokes_previous(self, engine, db, grants, alice, bob, document):
		grants.grants_relation(
			Collaboration, 'viewer', 'editor',
			to='user', on='document',
			selector=lambda c: c.permissions.split(','),
		)
		collaboration = Collaboration(
			document_id=document.id, user_id=alice.id, permissions="viewer",
		)
		db.add(collaboration)
		db.commit()

		collaboration.user_id = bob.id
		db.commit()

		assert engine.relations_between(alice, document) == set()
		assert engine.relations_between(bob, document) == {'viewer'}


class TestRuleConfiguration:

	def test_to_must_be_relationship(self, grants):
		with pytest.raises(ConfigurationError):
			grants.grants_relation(Document, 'owner', to='title')

	def test_needs_relation(self, grants):
		with pytest.raises(ConfigurationError):
			grants.grants_relation(Document, to='owner')

	def test_unmapped_model(self, grants):
		class Draft:
			pass

		with pytest.raises(ConfigurationError):
			grants.grants_relation(Draft, 'owner', to='owner')

	def test_rules_for(self, owner_grants, alice):
		assert [rule.to for rule in owner_grants.rules_for(Document(title="x"))] == ['owner']
		assert owner_grants.rules_for(alice) == []
