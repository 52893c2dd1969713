"""
File-backed storage.

One JSON document per branch at <project>/.planning/<branch>.todos.json.
Every operation re-reads the document; mutations rewrite it whole while
holding the partition lock.
"""

import json
import logging
from pathlib import Path
from typing import Callable, Optional, TypeVar

from planner.lib.locking import DEFAULT_LOCK_TIMEOUT, partition_lock
from planner.lib.repo_identifier import detect_current_branch, sanitize_branch_name
from planner.lib.types import BranchSummary, StorageData, now_iso
from planner.lib.validate import ValidationError, validate, validate_before_write
from planner.storage.base import StorageBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")

PLANNING_DIR = ".planning"
DOCUMENT_SUFFIX = ".todos.json"


def document_path(project_path: Path, branch: str) -> Path:
    """Location of a branch's document inside a project."""
    return Path(project_path) / PLANNING_DIR / f"{sanitize_branch_name(branch)}{DOCUMENT_SUFFIX}"


def read_document(path: Path) -> StorageData:
    """
    Read and validate a partition document.

    Raises:
        OSError: if the file can't be read
        json.JSONDecodeError: if it isn't JSON
        ValidationError: if it doesn't match the storage_data schema
    """
    raw = json.loads(path.read_text())
    validate(raw, "storage_data")
    return StorageData.from_dict(raw)


class FileStorage(StorageBackend):
    """Partition stored as a local JSON file, keyed by project directory and branch."""

    def __init__(
        self,
        project_path: Optional[Path] = None,
        branch: Optional[str] = None,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
    ):
        self.project_path = Path(project_path) if project_path else Path.cwd()
        super().__init__(branch or detect_current_branch(self.project_path))
        self.storage_path = document_path(self.project_path, self.branch)
        self.lock_timeout = lock_timeout

    @property
    def partition_key(self) -> str:
        return f"{self.project_path}:{self.branch}"

    def _empty(self) -> StorageData:
        return StorageData(branch=self.branch, project_path=str(self.project_path))

    def _write(self, data: StorageData, stamp: bool = True) -> None:
        if stamp:
            data.last_updated = now_iso()
        payload = data.to_dict()
        validate_before_write(payload, "storage_data", str(self.storage_path))
        self.storage_path.write_text(json.dumps(payload, indent=2))

    def initialize(self) -> None:
        """
        Create the .planning directory and the branch document if needed.

        An existing document is left untouched. A missing, unreadable or
        invalid one is replaced by an empty document.
        """
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)

        with partition_lock(self.storage_path, self.lock_timeout):
            try:
                data = read_document(self.storage_path)
                logger.info(
                    f"Loaded existing todos from {self.storage_path} "
                    f"(branch: {data.branch}, todos: {len(data.all_todos())})"
                )
                return
            except FileNotFoundError:
                logger.info(f"Creating new todo file for branch: {self.branch}")
            except (OSError, ValueError, ValidationError) as e:
                logger.warning(f"Unreadable todo file {self.storage_path}, starting fresh: {e}")

            # A fresh document has never been updated
            self._write(self._empty(), stamp=False)

    def load(self) -> StorageData:
        if not self.storage_path.exists():
            return self._empty()
        return read_document(self.storage_path)

    def _update(self, mutate: Callable[[StorageData], T]) -> T:
        self.storage_path.parent.mkdir(parents=True, exist_ok=True)
        with partition_lock(self.storage_path, self.lock_timeout):
            data = self.load()
            result = mutate(data)
            self._write(data)
            return result

    def branch_summaries(self) -> list[BranchSummary]:
        planning_dir = self.storage_path.parent
        if not planning_dir.is_dir():
            return []

        summaries = []
        for path in sorted(planning_dir.glob(f"*{DOCUMENT_SUFFIX}")):
            try:
                data = read_document(path)
            except (OSError, ValueError, ValidationError) as e:
                logger.warning(f"Skipping unreadable todo file {path}: {e}")
                continue
            summaries.append(BranchSummary.from_todos(data.branch, data.all_todos()))
        return summaries
