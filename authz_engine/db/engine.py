# (c) Copyright Datacraft, 2026
from functools import lru_cache
from typing import Generator

from sqlalchemy import create_engine, Engine
from sqlalchemy.pool import NullPool
from sqlalchemy.orm import sessionmaker, Session as SQLAlchemySession

from authz_engine.config import get_settings


@lru_cache()
def get_engine() -> Engine:
    settings = get_settings()
    return create_engine(settings.db_url, poolclass=NullPool)


@lru_cache()
def get_sessionmaker() -> sessionmaker:
    return sessionmaker(get_engine(), expire_on_commit=False)


def get_db() -> Generator[SQLAlchemySession, None, None]:
    """Request-scoped database session."""
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()
