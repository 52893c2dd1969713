"""
Configuration loader for the planning server.

Settings come from the process environment, falling back to an optional
.env file. The result is passed explicitly to the storage factory; nothing
else in the package reads the environment.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from planner.errors import ConfigurationError
from . import envparse

logger = logging.getLogger(__name__)

VALID_STORAGE_MODES = ("file", "redis")
VALID_ID_MODES = ("auto", "explicit", "path")

DEFAULT_REDIS_URL = "redis://localhost:6379"
DEFAULT_KEY_PREFIX = "planning"
DEFAULT_TTL_SECONDS = 2592000  # 30 days
DEFAULT_MAX_RETRIES = 3
DEFAULT_CLEANUP_INTERVAL_MS = 3600000


@dataclass
class RedisConfig:
    """Connection settings for the key-value backend."""
    url: str = DEFAULT_REDIS_URL
    key_prefix: str = DEFAULT_KEY_PREFIX
    ttl: Optional[int] = DEFAULT_TTL_SECONDS  # None disables expiry
    max_retries: int = DEFAULT_MAX_RETRIES


@dataclass
class StorageConfig:
    mode: str = "file"
    redis: Optional[RedisConfig] = None

    @property
    def is_redis(self) -> bool:
        return self.mode == "redis"


@dataclass
class RepositoryConfig:
    id_mode: str = "auto"
    default_repository: Optional[str] = None
    enable_multi_repo: bool = True


@dataclass
class SessionCleanupConfig:
    enabled: bool = False
    interval_ms: int = DEFAULT_CLEANUP_INTERVAL_MS


@dataclass
class AppConfig:
    """Fully resolved settings for one process."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    repository: RepositoryConfig = field(default_factory=RepositoryConfig)
    session_cleanup: SessionCleanupConfig = field(default_factory=SessionCleanupConfig)
    log_level: str = "WARNING"


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got '{raw}'") from None


def _choice(env: Mapping[str, str], key: str, valid: tuple, default: str) -> str:
    value = env.get(key, default) or default
    if value not in valid:
        logger.warning(f"Unknown {key} '{value}', using '{default}'. Valid: {', '.join(valid)}")
        return default
    return value


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    env_file: Optional[Path] = None,
) -> AppConfig:
    """
    Build AppConfig from environment variables.

    Args:
        environ: Variables to read (defaults to os.environ)
        env_file: Optional KEY=value file; its values are overridden by environ

    Raises:
        ConfigurationError: if a numeric setting is not an integer
    """
    env: dict[str, str] = {}
    if env_file is not None and Path(env_file).exists():
        env.update(envparse.load_env(env_file))
    env.update(os.environ if environ is None else environ)

    mode = _choice(env, "STORAGE_MODE", VALID_STORAGE_MODES, "file")

    redis_config = None
    if mode == "redis":
        ttl = _parse_int(env, "REDIS_TTL", DEFAULT_TTL_SECONDS)
        redis_config = RedisConfig(
            url=env.get("REDIS_URL") or DEFAULT_REDIS_URL,
            key_prefix=env.get("REDIS_KEY_PREFIX") or DEFAULT_KEY_PREFIX,
            ttl=ttl if ttl > 0 else None,
            max_retries=_parse_int(env, "REDIS_MAX_RETRIES", DEFAULT_MAX_RETRIES),
        )

    return AppConfig(
        storage=StorageConfig(mode=mode, redis=redis_config),
        repository=RepositoryConfig(
            id_mode=_choice(env, "REPO_ID_MODE", VALID_ID_MODES, "auto"),
            default_repository=env.get("DEFAULT_REPOSITORY") or None,
            enable_multi_repo=_parse_bool(env.get("ENABLE_MULTI_REPO"), True),
        ),
        session_cleanup=SessionCleanupConfig(
            enabled=_parse_bool(env.get("ENABLE_SESSION_CLEANUP"), False),
            interval_ms=_parse_int(env, "SESSION_CLEANUP_INTERVAL", DEFAULT_CLEANUP_INTERVAL_MS),
        ),
        log_level=(env.get("LOG_LEVEL") or "WARNING").upper(),
    )
