# (c) Copyright Datacraft, 2026
"""Database module for the authorization engine."""
from .base import Base
from .engine import get_engine, get_sessionmaker, get_db

__all__ = [
	'Base',
	'get_engine',
	'get_sessionmaker',
	'get_db',
]
