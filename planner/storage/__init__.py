"""Storage backends, session records and the factory that picks between them."""

from planner.storage.base import StorageBackend
from planner.storage.factory import StorageFactory
from planner.storage.file_storage import FileStorage
from planner.storage.redis_client import RedisStorageClient
from planner.storage.redis_storage import RedisStorage
from planner.storage.session_manager import SessionManager

__all__ = [
    "StorageBackend",
    "StorageFactory",
    "FileStorage",
    "RedisStorageClient",
    "RedisStorage",
    "SessionManager",
]
