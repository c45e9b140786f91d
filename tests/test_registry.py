# (c) Copyright Datacraft, 2026
import pytest

from authz_engine.exceptions import PolicyFrozenError
from authz_engine.policy import Policy, PolicyRegistry

from tests.models import Document


class TestPolicyFor:

	def test_exact_registration(self, registry, document_policy, document):
		assert registry.policy_for(Document) is document_policy
		assert registry.policy_for('Document') is document_policy
		assert registry.policy_for(document) is document_policy
		assert registry.registered_types == ['Document']

	def test_unknown_type(self, registry, document_policy):
		assert registry.policy_for('Invoice') is None
		assert registry.policy_for(None) is None
		assert registry.schema_for('Invoice') is None

	def test_ancestor_fallback(self, registry, document_policy):
		registry.declare_type('Report', parent='Document')
		registry.declare_type('QuarterlyReport', parent='Report')

		assert registry.ancestors('QuarterlyReport') == ['Report', 'Document']
		assert registry.policy_for('QuarterlyReport') is document_policy

	def test_nearest_ancestor_wins(self, registry, document_policy):
		report_policy = registry.register(Policy('Report'))
		registry.declare_type('Report', parent='Document')
		registry.declare_type('QuarterlyReport', parent='Report')

		assert registry.policy_for('QuarterlyReport') is report_policy

	def test_walk_stops_at_root(self, registry):
		registry.register(Policy('object'))
		registry.declare_type('Widget', parent='object')

		assert registry.ancestors('Widget') == []
		assert registry.policy_for('Widget') is None
		assert registry.policy_for('object') is not None

	def test_type_cycle_terminates(self, registry):
		registry.declare_type('A', parent='B')
		registry.declare_type('B', parent='A')

		assert registry.ancestors('A') == ['B']
		assert registry.policy_for('A') is None

	def test_resolution_memo_reset_on_register(self, registry):
		registry.declare_type('Report', parent='Document')
		assert registry.policy_for('Report') is None

		policy = registry.register(Policy('Document'))
		assert registry.policy_for('Report') is policy

		registry.unregister('Document')
		assert registry.policy_for('Report') is None

	def test_register_during_resolution_is_not_lost(self, registry, monkeypatch):
		registry.declare_type('Report', parent='Document')
		resolve = registry._resolve
		late_policy = Policy('Document')

		def resolve_while_registering(tag):
			stale = resolve(tag)
			registry.register(late_policy)
			return stale

		monkeypatch.setattr(registry, '_resolve', resolve_while_registering)
		assert registry.policy_for('Report') is None

		monkeypatch.setattr(registry, '_resolve', resolve)
		assert registry.policy_for('Report') is late_policy

	def test_replaces_policy(self, registry, document_policy):
		replacement = registry.register(Policy(Document, name='StrictDocumentPolicy'))

		assert registry.policy_for(Document) is replacement
		assert len(registry) == 1


class TestRegistration:

	def test_register_freezes(self, registry):
		policy = Policy('Invoice')
		policy.permission('view')
		registry.register(policy)

		assert policy.frozen
		with pytest.raises(PolicyFrozenError):
			policy.permission('edit')
		with pytest.raises(PolicyFrozenError):
			policy.relation('viewer')
		with pytest.raises(PolicyFrozenError):
			policy.permissions['view'].allow_if(lambda obj, sub, ctx: True)

	def test_schema_for(self, registry, document_policy):
		schema = registry.schema_for('Document')

		assert schema is document_policy.schema
		assert schema.effective_relations('viewer') == {'viewer', 'editor', 'owner'}

	def test_fresh_registry_is_empty(self, settings, document_policy):
		assert PolicyRegistry(settings).policy_for(Document) is None
