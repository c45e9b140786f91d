# (c) Copyright Datacraft, 2026
"""Relationship-based authorization decision engine."""
from .cache import CacheStore, DecisionCache, MemoryCacheStore, build_cache_store
from .config import Settings, get_settings, configure_logging
from .engine import AuthorizationEngine
from .grants import GrantRule, RelationGrants
from .identity import ResourceRef
from .exceptions import (
	AuthzError, ConfigurationError, MissingFilterError, NotAuthorized,
	PolicyFrozenError, PolicyNotFound, RelationCycleError, ScopeNotDeclared,
	ScopeNotSupported, UnknownActionError,
)
from .policy import Permission, Policy, PolicyRegistry, RuleContext
from .rebac import RelationTuple, TupleKey

__all__ = [
	'AuthorizationEngine',
	'RelationGrants',
	'GrantRule',
	'ResourceRef',
	'Policy',
	'PolicyRegistry',
	'Permission',
	'RuleContext',
	'RelationTuple',
	'TupleKey',
	'CacheStore',
	'DecisionCache',
	'MemoryCacheStore',
	'build_cache_store',
	'Settings',
	'get_settings',
	'configure_logging',
	'AuthzError',
	'ConfigurationError',
	'MissingFilterError',
	'NotAuthorized',
	'PolicyFrozenError',
	'PolicyNotFound',
	'RelationCycleError',
	'ScopeNotDeclared',
	'ScopeNotSupported',
	'UnknownActionError',
]
