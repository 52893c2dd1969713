"""
Session records for the key-value backend.

A session maps a (user, session id) pair to the repository and branch the
user is working on. Sessions are only reachable through the user id they
were created under.
"""

import logging
import uuid
from typing import Optional

from planner.errors import ConfigurationError
from planner.lib.types import RepositoryContext, SessionContext, now_iso
from planner.lib.validate import ValidationError, validate, validate_before_write
from planner.storage.redis_client import RedisStorageClient

logger = logging.getLogger(__name__)


class SessionManager:
    """Create, look up, list and delete session records."""

    def __init__(self, client: RedisStorageClient):
        self.client = client

    def _write(self, session: SessionContext) -> None:
        key = self.client.session_key(session.user_id, session.session_id)
        payload = session.to_dict()
        validate_before_write(payload, "session", key)
        self.client.set_json(key, payload)

    def create_or_update_session(
        self,
        user_id: str,
        repository: RepositoryContext,
        session_id: Optional[str] = None,
    ) -> SessionContext:
        """
        Upsert a session and register it in the user's session set.

        A new id is generated when session_id is None. Updating keeps the
        original createdAt, overwrites the repository and refreshes
        lastAccessed.

        Raises:
            ConfigurationError: if the key already holds another user's session
        """
        session_id = session_id or str(uuid.uuid4())
        timestamp = now_iso()

        existing = self.get_session_by_ids(user_id, session_id)
        if existing is None and self.validate_session(user_id, session_id):
            raise ConfigurationError(
                f"Session id {session_id} of {user_id} collides with another user's session"
            )
        session = SessionContext(
            user_id=user_id,
            session_id=session_id,
            repository=repository,
            created_at=existing.created_at if existing else timestamp,
            last_accessed=timestamp,
        )

        self._write(session)
        self.client.sadd(self.client.user_sessions_key(user_id), session_id)

        if existing is None:
            logger.info(
                f"Created session {session_id} for {user_id} "
                f"({repository.repo_identifier}@{repository.branch})"
            )
        return session

    def touch_session(self, session: SessionContext) -> SessionContext:
        """Refresh lastAccessed of an existing session."""
        session.last_accessed = now_iso()
        self._write(session)
        return session

    def validate_session(self, user_id: str, session_id: str) -> bool:
        return self.client.exists(self.client.session_key(user_id, session_id))

    def get_session_by_ids(self, user_id: str, session_id: str) -> Optional[SessionContext]:
        """
        Load one session record.

        Raises:
            ValidationError: if the stored record is malformed
        """
        data = self.client.get_json(self.client.session_key(user_id, session_id))
        if data is None:
            return None
        validate(data, "session")
        session = SessionContext.from_dict(data)
        # Ids may contain ":", so two (user, session) pairs can share one key
        if session.user_id != user_id or session.session_id != session_id:
            logger.warning(
                f"Session key for {user_id}/{session_id} holds a record of "
                f"{session.user_id}/{session.session_id}, ignoring it"
            )
            return None
        return session

    def get_user_sessions(self, user_id: str) -> list[SessionContext]:
        """All sessions of a user. Missing or malformed records are skipped."""
        sessions = []
        for session_id in sorted(self.client.smembers(self.client.user_sessions_key(user_id))):
            try:
                session = self.get_session_by_ids(user_id, session_id)
            except (ValueError, ValidationError) as e:
                logger.warning(f"Skipping malformed session {session_id} of {user_id}: {e}")
                continue
            if session is not None:
                sessions.append(session)
        return sessions

    def find_session(self, user_id: str, repository: str, branch: str) -> Optional[SessionContext]:
        """First session of the user working on repository+branch."""
        for session in self.get_user_sessions(user_id):
            if (session.repository.repo_identifier == repository
                    and session.repository.branch == branch):
                return session
        return None

    def delete_session(self, session_id: str, user_id: str) -> None:
        key = self.client.session_key(user_id, session_id)
        record = self.client.get_json(key)
        if isinstance(record, dict) and record.get("userId", user_id) != user_id:
            logger.warning(f"Not deleting {key}: it belongs to {record['userId']}")
        else:
            self.client.delete(key)
        self.client.srem(self.client.user_sessions_key(user_id), session_id)

    def prune_sessions(self, user_id: str) -> int:
        """Drop ids from the user's session set whose record has expired."""
        sessions_key = self.client.user_sessions_key(user_id)
        removed = 0
        for session_id in self.client.smembers(sessions_key):
            if not self.validate_session(user_id, session_id):
                self.client.srem(sessions_key, session_id)
                removed += 1
        if removed:
            logger.info(f"Pruned {removed} expired session(s) for {user_id}")
        return removed
