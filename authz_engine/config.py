# (c) Copyright Datacraft, 2026
import logging

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    db_url: str = "sqlite:///authz.db"

    # Decision cache
    cache_ttl: int = Field(gt=0, default=3600, description="Default cache entry TTL in seconds")
    cache_key_prefix: str = Field(default="authz", min_length=1)
    redis_url: str | None = Field(default=None, description="Redis URL for the shared decision cache")

    # Policy registry
    root_types: list[str] = Field(
        default_factory=lambda: ["object", "Base"],
        description="Type tags above which no policy lookup is attempted",
    )

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix='authz_')


@lru_cache()
def get_settings():
    return Settings()


def configure_logging(settings: Settings | None = None):
    """Apply the configured level to the package logger."""
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        logger.warning(f"Unknown log level {settings.log_level!r}, using INFO")
        level = logging.INFO
    logging.getLogger("authz_engine").setLevel(level)
