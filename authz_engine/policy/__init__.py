# (c) Copyright Datacraft, 2026
from .allow_where import build_criterion, record_matches
from .base import Policy, PolicyContext, ScopeConfig
from .permission import Permission, Rule, RuleContext, RuleEffect
from .registry import PolicyRegistry

__all__ = [
	'Policy',
	'PolicyContext',
	'ScopeConfig',
	'Permission',
	'Rule',
	'RuleContext',
	'RuleEffect',
	'PolicyRegistry',
	'build_criterion',
	'record_matches',
]
