"""
Redis-backed storage.

One JSON document per (user, repository, branch). Documents are created
lazily by the first write; reads of a missing document see an empty
partition.
"""

import logging
from typing import Any, Callable, Optional, TypeVar

from planner.lib.types import BranchSummary, Goal, StorageData, now_iso
from planner.lib.validate import ValidationError, validate, validate_before_write
from planner.storage.base import StorageBackend
from planner.storage.redis_client import RedisStorageClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RedisStorage(StorageBackend):
    """Partition stored under a composite user/repository/branch key."""

    def __init__(self, client: RedisStorageClient, user_id: str, repository: str, branch: str):
        super().__init__(branch)
        self.client = client
        self.user_id = user_id
        self.repository = repository
        self.data_key = client.user_repo_data_key(user_id, repository, branch)

    @property
    def partition_key(self) -> str:
        return self.data_key

    def _empty(self) -> StorageData:
        return StorageData(branch=self.branch, repository=self.repository)

    def _from_raw(self, raw: Optional[dict[str, Any]]) -> StorageData:
        if raw is None:
            return self._empty()
        validate(raw, "storage_data")
        return StorageData.from_dict(raw)

    def _stamp_goal(self, goal: Goal) -> Goal:
        goal.repository = self.repository
        goal.branch = self.branch
        return goal

    def initialize(self) -> None:
        # Documents are created on first write
        pass

    def load(self) -> StorageData:
        return self._from_raw(self.client.get_json(self.data_key))

    def _update(self, mutate: Callable[[StorageData], T]) -> T:
        def apply(raw: Optional[dict[str, Any]]) -> tuple[dict[str, Any], T]:
            data = self._from_raw(raw)
            result = mutate(data)
            data.last_updated = now_iso()
            payload = data.to_dict()
            validate_before_write(payload, "storage_data", self.data_key)
            return payload, result

        return self.client.update_json(self.data_key, apply)

    def branch_summaries(self) -> list[BranchSummary]:
        pattern = self.client.user_repo_branches_pattern(self.user_id, self.repository)
        summaries = []
        for key in sorted(self.client.scan_keys(pattern)):
            branch = self.client.branch_from_data_key(key, self.user_id, self.repository)
            try:
                data = self._from_raw(self.client.get_json(key))
            except (ValueError, ValidationError) as e:
                logger.warning(f"Skipping unreadable partition {key}: {e}")
                continue
            summaries.append(BranchSummary.from_todos(branch, data.all_todos()))
        return summaries
