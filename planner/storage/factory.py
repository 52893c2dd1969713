"""
Storage factory and context resolution.

Turns the arguments of one tool call into a SessionContext (which
partition?) and a storage handle bound to that partition.

Resolution order, per call:
    1. redis mode requires userId
    2. an existing sessionId of that user wins outright
    3. repository: repository arg > gitRemoteUrl arg > REPO_ID_MODE
    4. branch: branch arg > checked-out branch
    5. redis mode records a new session; file mode synthesizes one
"""

import logging
import threading
import time
from pathlib import Path
from typing import Any, Mapping, Optional

from planner.errors import ConfigurationError
from planner.lib.config import AppConfig
from planner.lib.repo_identifier import (
    detect_current_branch,
    detect_repository_id,
    extract_repo_identifier,
)
from planner.lib.types import RepositoryContext, SessionContext, now_iso
from planner.storage.base import StorageBackend
from planner.storage.file_storage import FileStorage
from planner.storage.redis_client import RedisStorageClient
from planner.storage.redis_storage import RedisStorage
from planner.storage.session_manager import SessionManager

logger = logging.getLogger(__name__)

LOCAL_USER = "local"


class StorageFactory:
    """Resolves call arguments to partitions and hands out storage handles.

    Handles are cached per partition key for the lifetime of the factory.
    The cache only saves construction; handles hold no partition state.
    """

    def __init__(self, config: AppConfig, redis_client: Optional[RedisStorageClient] = None):
        """
        Args:
            config: Resolved application settings
            redis_client: Client to use in redis mode (built from config if omitted)
        """
        self.config = config
        self.redis_client = redis_client
        self.session_manager: Optional[SessionManager] = None

        if config.storage.is_redis:
            if self.redis_client is None:
                if config.storage.redis is None:
                    raise ConfigurationError("Redis storage mode requires redis settings")
                self.redis_client = RedisStorageClient(config.storage.redis)
            self.session_manager = SessionManager(self.redis_client)

        self._storages: dict[str, StorageBackend] = {}
        self._lock = threading.Lock()
        self._last_cleanup: dict[str, float] = {}

    @property
    def is_redis(self) -> bool:
        return self.config.storage.is_redis

    # Context resolution

    def resolve_context(self, args: Mapping[str, Any]) -> SessionContext:
        """
        Decide which partition a call targets.

        Args:
            args: Tool arguments; reads userId, sessionId, repository,
                branch, gitRemoteUrl and projectPath

        Raises:
            ConfigurationError: if userId is missing in redis mode, or
                REPO_ID_MODE=explicit has no repository to use
            RepoIdentifierError: if gitRemoteUrl can't be parsed
        """
        user_id = args.get("userId")
        if self.is_redis and not user_id:
            raise ConfigurationError("userId is required when using redis storage mode")

        project_path = Path(args.get("projectPath") or Path.cwd())

        if self.is_redis:
            self._maybe_prune_sessions(user_id)
            session_id = args.get("sessionId")
            if session_id:
                session = self.session_manager.get_session_by_ids(user_id, session_id)
                if session is not None:
                    logger.debug(f"Continuing session {session_id} for {user_id}")
                    return self.session_manager.touch_session(session)

        remote_url = args.get("gitRemoteUrl") if self.config.repository.enable_multi_repo else None
        repository = RepositoryContext(
            repo_identifier=self._resolve_repository(args, project_path),
            branch=args.get("branch") or detect_current_branch(project_path),
            remote_url=remote_url or None,
            local_path=str(project_path),
        )

        if self.is_redis:
            # Absent or unknown sessionId: record a new session
            return self.session_manager.create_or_update_session(
                user_id=user_id,
                repository=repository,
                session_id=args.get("sessionId"),
            )

        timestamp = now_iso()
        return SessionContext(
            user_id=user_id or LOCAL_USER,
            session_id=f"{repository.repo_identifier}:{repository.branch}",
            repository=repository,
            created_at=timestamp,
            last_accessed=timestamp,
        )

    def _resolve_repository(self, args: Mapping[str, Any], project_path: Path) -> str:
        repo_config = self.config.repository

        if repo_config.enable_multi_repo:
            if args.get("repository"):
                return args["repository"]
            if args.get("gitRemoteUrl"):
                return extract_repo_identifier(args["gitRemoteUrl"])

        if repo_config.id_mode == "explicit":
            if not repo_config.default_repository:
                raise ConfigurationError(
                    "REPO_ID_MODE=explicit needs a repository argument or DEFAULT_REPOSITORY"
                )
            return repo_config.default_repository
        if repo_config.id_mode == "path":
            return project_path.resolve().name or str(project_path)
        return detect_repository_id(project_path)

    def _maybe_prune_sessions(self, user_id: str) -> None:
        cleanup = self.config.session_cleanup
        if not cleanup.enabled:
            return
        now = time.monotonic()
        last = self._last_cleanup.get(user_id)
        if last is not None and (now - last) * 1000 < cleanup.interval_ms:
            return
        self._last_cleanup[user_id] = now
        self.session_manager.prune_sessions(user_id)

    # Storage handles

    def get_storage(self, context: SessionContext) -> StorageBackend:
        """
        Initialized storage handle for the context's partition (cached).

        The handle is built and initialized outside the cache lock, since
        file initialization may wait on the partition's file lock. If two
        threads race on a new partition, the first handle cached wins.
        """
        repository = context.repository
        if self.is_redis:
            key = self.redis_client.user_repo_data_key(
                context.user_id, repository.repo_identifier, repository.branch
            )
        else:
            local_path = Path(repository.local_path) if repository.local_path else Path.cwd()
            key = f"{local_path}:{repository.branch}"

        with self._lock:
            storage = self._storages.get(key)
        if storage is not None:
            return storage

        if self.is_redis:
            storage = RedisStorage(
                self.redis_client,
                user_id=context.user_id,
                repository=repository.repo_identifier,
                branch=repository.branch,
            )
        else:
            storage = FileStorage(local_path, repository.branch)
        storage.initialize()

        with self._lock:
            cached = self._storages.setdefault(key, storage)
        if cached is storage:
            logger.debug(f"Created storage handle for {key}")
        return cached

    def storage_for(self, args: Mapping[str, Any]) -> tuple[SessionContext, StorageBackend]:
        """Resolve the context of a call and return it with its storage handle."""
        context = self.resolve_context(args)
        return context, self.get_storage(context)

    def health_check(self) -> bool:
        if self.is_redis:
            return self.redis_client.health_check()
        return True

    def close(self) -> None:
        with self._lock:
            self._storages.clear()
        if self.redis_client is not None:
            self.redis_client.close()
