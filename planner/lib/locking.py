"""
Per-document locks for file storage.

A partition document is rewritten whole on every mutation, so two
processes updating the same branch must take turns. Each document gets a
sidecar "<name>.lock" file held with flock for the duration of one
read-modify-write.
"""

import fcntl
import logging
import os
import time
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 30
POLL_INTERVAL = 0.05
LOCK_SUFFIX = ".lock"


class LockTimeout(Exception):
    """Another process held the document lock for longer than the timeout."""

    def __init__(self, document: Path, timeout: float):
        self.document = document
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for the lock on {document.name}")


def lock_path_for(document: Path) -> Path:
    """Sidecar lock file for a document: main.todos.json -> main.todos.json.lock"""
    return document.with_name(document.name + LOCK_SUFFIX)


def _try_flock(handle) -> bool:
    try:
        fcntl.flock(handle, fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    return True


@contextmanager
def partition_lock(document: Path, timeout: float = DEFAULT_LOCK_TIMEOUT):
    """
    Hold the exclusive lock for one partition document.

    Polls until the lock is free or timeout seconds pass. The holder's pid
    is written into the lock file for debugging. Lock files are left in
    place after release; unlinking one while another process waits on it
    would let two processes lock different inodes under the same path.

    Raises:
        LockTimeout: if the lock isn't acquired in time
    """
    lock_file = lock_path_for(document)
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    with open(lock_file, "w") as handle:
        deadline = time.monotonic() + timeout
        waited = False
        while not _try_flock(handle):
            if time.monotonic() >= deadline:
                raise LockTimeout(document, timeout)
            if not waited:
                logger.debug(f"Waiting for lock on {document.name}")
                waited = True
            time.sleep(POLL_INTERVAL)

        try:
            handle.write(f"{os.getpid()}\n")
            handle.flush()
            yield
        finally:
            fcntl.flock(handle, fcntl.LOCK_UN)
