"""
Redis client wrapper for the key-value backend.

Owns key naming and expiry. All keys are namespaced by the configured
prefix:

    <prefix>:session:<user>:<session>                  session record (JSON)
    <prefix>:user:<user>:sessions                      set of the user's session ids
    <prefix>:user:<user>:repo:<repo>:branch:<branch>   partition document (JSON)
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Iterator, Optional, TypeVar

import redis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, RedisError, TimeoutError
from redis.retry import Retry

from planner.lib.config import RedisConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

GLOB_SPECIAL_RE = re.compile(r"([*?\[\]\\])")


def escape_glob(value: str) -> str:
    """Escape redis glob metacharacters so value matches literally."""
    return GLOB_SPECIAL_RE.sub(r"\\\1", value)


class RedisStorageClient:
    """Thin layer over redis.Redis with key builders and TTL handling."""

    def __init__(self, config: RedisConfig, client: Optional[redis.Redis] = None):
        """
        Args:
            config: Connection, prefix and expiry settings
            client: Pre-built client to use instead of connecting to config.url
        """
        self.config = config
        if client is None:
            client = redis.Redis.from_url(
                config.url,
                decode_responses=True,
                retry=Retry(ExponentialBackoff(), config.max_retries),
                retry_on_error=[ConnectionError, TimeoutError],
            )
        self.client = client

    # Key generation helpers

    def _key(self, *parts: str) -> str:
        return ":".join([self.config.key_prefix, *parts])

    def session_key(self, user_id: str, session_id: str) -> str:
        return self._key("session", user_id, session_id)

    def user_sessions_key(self, user_id: str) -> str:
        return self._key("user", user_id, "sessions")

    def user_repo_data_key(self, user_id: str, repo_id: str, branch: str) -> str:
        return self._key("user", user_id, "repo", repo_id, "branch", branch)

    def user_repo_branches_pattern(self, user_id: str, repo_id: str) -> str:
        """Glob matching every branch document of one user and repository."""
        prefix = self.user_repo_data_key(user_id, repo_id, "")
        return escape_glob(prefix) + "*"

    def branch_from_data_key(self, key: str, user_id: str, repo_id: str) -> str:
        return key[len(self.user_repo_data_key(user_id, repo_id, "")):]

    # Connection management

    def ping(self) -> bool:
        return bool(self.client.ping())

    def health_check(self) -> bool:
        """True if the server answers PING. Never raises."""
        try:
            return self.ping()
        except RedisError as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    def close(self) -> None:
        self.client.close()

    # Redis operations

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def get_json(self, key: str) -> Optional[Any]:
        raw = self.client.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: str) -> None:
        """Store value, expiring after the configured TTL if there is one."""
        self.client.set(key, value, ex=self.config.ttl)

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))

    def delete(self, key: str) -> None:
        self.client.delete(key)

    def exists(self, key: str) -> bool:
        return self.client.exists(key) == 1

    def sadd(self, key: str, member: str) -> None:
        self.client.sadd(key, member)
        if self.config.ttl:
            self.client.expire(key, self.config.ttl)

    def srem(self, key: str, member: str) -> None:
        self.client.srem(key, member)

    def smembers(self, key: str) -> set[str]:
        return self.client.smembers(key)

    def scan_keys(self, pattern: str) -> Iterator[str]:
        return self.client.scan_iter(match=pattern)

    def update_json(self, key: str, mutate: Callable[[Optional[Any]], tuple[Any, T]]) -> T:
        """
        Read-modify-write a JSON value under WATCH.

        mutate receives the current value (None if absent) and returns
        (new value, result). If another client changes the key before EXEC,
        the whole cycle is retried with the fresh value. Exceptions raised
        by mutate abort without writing.

        Returns:
            The result returned by mutate on the successful attempt
        """
        def apply(pipe) -> T:
            raw = pipe.get(key)
            current = json.loads(raw) if raw is not None else None
            updated, result = mutate(current)
            pipe.multi()
            pipe.set(key, json.dumps(updated), ex=self.config.ttl)
            return result

        return self.client.transaction(apply, key, value_from_callable=True)
