# (c) Copyright Datacraft, 2026
"""Test configuration and fixtures."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from authz_engine.cache import MemoryCacheStore
from authz_engine.config import Settings
from authz_engine.db.base import Base
from authz_engine.engine import AuthorizationEngine
from authz_engine.policy import Policy, PolicyRegistry

from tests.models import Document, Team, User


def build_document_policy() -> Policy:
	"""Owner/editor/viewer hierarchy with team membership granting viewer."""
	policy = Policy(Document)

	policy.relation('viewer')
	policy.relation('editor', requires=['viewer'])
	policy.relation('owner', requires=['editor', 'viewer'])
	policy.relation('viewer', via={'member': Team})

	view = policy.permission('view', relation='viewer')
	view.deny_if(lambda doc, user, ctx: doc.archived)
	view.allow_if(lambda doc, user, ctx: doc.public)

	edit = policy.permission('edit', relation='editor')
	edit.deny_if(lambda doc, user, ctx: doc.archived)

	policy.permission('destroy', relation='owner')

	return policy


@pytest.fixture
def settings():
	return Settings(db_url="sqlite://", cache_ttl=60, cache_key_prefix="authz")


@pytest.fixture
def db_engine():
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
	)
	Base.metadata.create_all(engine)
	yield engine
	engine.dispose()


@pytest.fixture
def db(db_engine):
	with Session(db_engine, expire_on_commit=False) as session:
		yield session


@pytest.fixture
def registry(settings):
	return PolicyRegistry(settings)


@pytest.fixture
def document_policy(registry):
	return registry.register(build_document_policy())


@pytest.fixture
def cache_store():
	return MemoryCacheStore()


@pytest.fixture
def engine(db, registry, document_policy, cache_store, settings):
	return AuthorizationEngine(db, registry, cache_store=cache_store, settings=settings)


@pytest.fixture
def make_user(db):
	def make(name: str) -> User:
		user = User(name=name)
		db.add(user)
		db.commit()
		return user
	return make


@pytest.fixture
def make_document(db):
	def make(title: str, **attrs) -> Document:
		attrs.setdefault("public", False)
		attrs.setdefault("archived", False)
		document = Document(title=title, **attrs)
		db.add(document)
		db.commit()
		return document
	return make


@pytest.fixture
def alice(make_user):
	return make_user("alice")


@pytest.fixture
def bob(make_user):
	return make_user("bob")


@pytest.fixture
def team(db):
	team = Team(name="writers")
	db.add(team)
	db.commit()
	return team


@pytest.fixture
def document(make_document, alice):
	return make_document("Roadmap", owner_id=alice.id)
