"""Tests for planner.storage.factory module."""

import fcntl
import threading
import time

import pytest

from planner.errors import ConfigurationError
from planner.lib.config import AppConfig, RepositoryConfig, SessionCleanupConfig, StorageConfig
from planner.lib.locking import lock_path_for
from planner.lib.repo_identifier import RepoIdentifierError
from planner.storage.factory import StorageFactory
from planner.storage.file_storage import FileStorage, document_path
from planner.storage.redis_storage import RedisStorage


@pytest.fixture
def redis_factory(redis_app_config, redis_client):
    return StorageFactory(redis_app_config, redis_client=redis_client)


@pytest.fixture
def file_factory():
    return StorageFactory(AppConfig())


class TestConstruction:
    def test_file_mode_has_no_session_manager(self, file_factory):
        assert file_factory.is_redis is False
        assert file_factory.session_manager is None
        assert file_factory.health_check() is True

    def test_redis_mode_without_settings(self):
        config = AppConfig(storage=StorageConfig(mode="redis", redis=None))
        with pytest.raises(ConfigurationError):
            StorageFactory(config)

    def test_redis_health_check(self, redis_factory):
        assert redis_factory.health_check() is True


class TestResolveContextRedis:
    """Context resolution in redis mode."""

    def test_requires_user_id(self, redis_factory):
        with pytest.raises(ConfigurationError, match="userId is required"):
            redis_factory.resolve_context({"repository": "r", "branch": "main"})

    def test_creates_session(self, redis_factory, tmp_path):
        context = redis_factory.resolve_context({
            "userId": "alice",
            "repository": "github.com/acme/app",
            "branch": "feature/x",
            "projectPath": str(tmp_path),
        })

        assert context.user_id == "alice"
        assert context.session_id
        assert context.repository.repo_identifier == "github.com/acme/app"
        assert context.repository.branch == "feature/x"
        assert context.repository.local_path == str(tmp_path)
        stored = redis_factory.session_manager.get_session_by_ids("alice", context.session_id)
        assert stored.repository.branch == "feature/x"

    def test_existing_session_wins(self, redis_factory):
        first = redis_factory.resolve_context({
            "userId": "alice", "repository": "github.com/acme/app", "branch": "main",
        })

        again = redis_factory.resolve_context({
            "userId": "alice",
            "sessionId": first.session_id,
            "repository": "github.com/other/repo",
            "branch": "dev",
        })

        assert again.session_id == first.session_id
        assert again.repository.repo_identifier == "github.com/acme/app"
        assert again.repository.branch == "main"

    def test_unknown_session_id_is_adopted(self, redis_factory):
        context = redis_factory.resolve_context({
            "userId": "alice", "sessionId": "mine", "repository": "r", "branch": "b",
        })
        assert context.session_id == "mine"
        assert redis_factory.session_manager.validate_session("alice", "mine")

    def test_new_session_per_call_without_session_id(self, redis_factory):
        """Should record a fresh session id, sharing the same partition."""
        args = {"userId": "alice", "repository": "r", "branch": "b"}
        first = redis_factory.resolve_context(args)
        second = redis_factory.resolve_context(args)

        assert second.session_id != first.session_id
        assert len(redis_factory.session_manager.get_user_sessions("alice")) == 2
        assert redis_factory.get_storage(first) is redis_factory.get_storage(second)

    def test_colliding_session_id_is_rejected(self, redis_factory):
        owner = redis_factory.resolve_context({
            "userId": "alice:x", "sessionId": "y", "repository": "r", "branch": "b",
        })

        with pytest.raises(ConfigurationError, match="collides"):
            redis_factory.resolve_context({
                "userId": "alice", "sessionId": "x:y", "repository": "other", "branch": "dev",
            })

        stored = redis_factory.session_manager.get_session_by_ids("alice:x", "y")
        assert stored.repository == owner.repository

    def test_other_users_session_id_is_not_shared(self, redis_factory):
        alice = redis_factory.resolve_context({"userId": "alice", "repository": "r", "branch": "b"})
        bob = redis_factory.resolve_context({
            "userId": "bob", "sessionId": alice.session_id, "repository": "other", "branch": "x",
        })
        assert bob.user_id == "bob"
        assert bob.repository.repo_identifier == "other"

    def test_git_remote_url(self, redis_factory):
        context = redis_factory.resolve_context({
            "userId": "alice",
            "gitRemoteUrl": "git@github.com:acme/app.git",
            "branch": "main",
        })
        assert context.repository.repo_identifier == "github.com/acme/app"
        assert context.repository.remote_url == "git@github.com:acme/app.git"

    def test_bad_git_remote_url(self, redis_factory):
        with pytest.raises(RepoIdentifierError):
            redis_factory.resolve_context({"userId": "alice", "gitRemoteUrl": "nonsense", "branch": "main"})

    def test_session_cleanup_prunes_expired_ids(self, redis_config, redis_client):
        config = AppConfig(
            storage=StorageConfig(mode="redis", redis=redis_config),
            session_cleanup=SessionCleanupConfig(enabled=True, interval_ms=0),
        )
        factory = StorageFactory(config, redis_client=redis_client)
        sessions_key = redis_client.user_sessions_key("alice")
        redis_client.sadd(sessions_key, "stale")

        factory.resolve_context({"userId": "alice", "repository": "r", "branch": "b"})

        assert "stale" not in redis_client.smembers(sessions_key)


class TestResolveContextFile:
    """Context resolution in file mode."""

    def test_synthesized_session_id(self, file_factory, tmp_path):
        context = file_factory.resolve_context({
            "projectPath": str(tmp_path), "repository": "acme/app", "branch": "main",
        })
        assert context.session_id == "acme/app:main"
        assert context.user_id == "local"

    def test_user_id_optional(self, file_factory, tmp_path):
        context = file_factory.resolve_context({
            "userId": "alice", "projectPath": str(tmp_path), "repository": "r", "branch": "b",
        })
        assert context.user_id == "alice"

    def test_auto_mode_detects_from_git(self, file_factory, git_repo):
        context = file_factory.resolve_context({"projectPath": str(git_repo)})
        assert context.repository.repo_identifier == "test-repo"
        assert context.repository.branch == "main"

    def test_explicit_mode(self, tmp_path):
        config = AppConfig(repository=RepositoryConfig(id_mode="explicit", default_repository="acme/fixed"))
        context = StorageFactory(config).resolve_context({"projectPath": str(tmp_path), "branch": "main"})
        assert context.repository.repo_identifier == "acme/fixed"

    def test_explicit_mode_without_repository(self, tmp_path):
        config = AppConfig(repository=RepositoryConfig(id_mode="explicit"))
        with pytest.raises(ConfigurationError, match="REPO_ID_MODE=explicit"):
            StorageFactory(config).resolve_context({"projectPath": str(tmp_path), "branch": "main"})

    def test_path_mode(self, tmp_path):
        project = tmp_path / "my-project"
        project.mkdir()
        config = AppConfig(repository=RepositoryConfig(id_mode="path"))
        context = StorageFactory(config).resolve_context({"projectPath": str(project), "branch": "main"})
        assert context.repository.repo_identifier == "my-project"

    def test_multi_repo_disabled_ignores_arguments(self, tmp_path):
        project = tmp_path / "local-name"
        project.mkdir()
        config = AppConfig(repository=RepositoryConfig(id_mode="path", enable_multi_repo=False))
        context = StorageFactory(config).resolve_context({
            "projectPath": str(project),
            "repository": "github.com/acme/app",
            "gitRemoteUrl": "https://github.com/acme/app.git",
            "branch": "main",
        })
        assert context.repository.repo_identifier == "local-name"
        assert context.repository.remote_url is None


class TestGetStorage:
    def test_file_handle_cached(self, file_factory, tmp_path):
        args = {"projectPath": str(tmp_path), "repository": "r", "branch": "main"}
        _, first = file_factory.storage_for(args)
        _, second = file_factory.storage_for(args)

        assert isinstance(first, FileStorage)
        assert first is second
        assert first.storage_path.exists()

    def test_file_handles_per_branch(self, file_factory, tmp_path):
        _, main = file_factory.storage_for({"projectPath": str(tmp_path), "repository": "r", "branch": "main"})
        _, dev = file_factory.storage_for({"projectPath": str(tmp_path), "repository": "r", "branch": "dev"})
        assert main is not dev
        assert dev.branch == "dev"

    def test_redis_handle_per_user(self, redis_factory):
        _, alice = redis_factory.storage_for({"userId": "alice", "repository": "r", "branch": "b"})
        _, alice_again = redis_factory.storage_for({"userId": "alice", "repository": "r", "branch": "b"})
        _, bob = redis_factory.storage_for({"userId": "bob", "repository": "r", "branch": "b"})

        assert isinstance(alice, RedisStorage)
        assert alice is alice_again
        assert alice is not bob

    def test_close_clears_cache(self, file_factory, tmp_path):
        args = {"projectPath": str(tmp_path), "repository": "r", "branch": "main"}
        _, first = file_factory.storage_for(args)
        file_factory.close()
        _, second = file_factory.storage_for(args)
        assert first is not second

    def test_waiting_partition_does_not_block_others(self, file_factory, tmp_path):
        """Should hand out other handles while one partition waits on its file lock."""
        blocked = document_path(tmp_path, "blocked")
        blocked.parent.mkdir(parents=True)
        results = {}

        def open_branch(branch):
            _, storage = file_factory.storage_for(
                {"projectPath": str(tmp_path), "repository": "r", "branch": branch}
            )
            results[branch] = storage

        with open(lock_path_for(blocked), "w") as holder:
            fcntl.flock(holder, fcntl.LOCK_EX)
            waiting = threading.Thread(target=open_branch, args=("blocked",))
            waiting.start()
            time.sleep(0.2)

            free = threading.Thread(target=open_branch, args=("free",))
            free.start()
            free.join(timeout=5)

            assert not free.is_alive()
            assert "free" in results
            assert "blocked" not in results
            fcntl.flock(holder, fcntl.LOCK_UN)

        waiting.join(timeout=5)
        assert results["blocked"].branch == "blocked"
