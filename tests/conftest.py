"""Shared fixtures: throwaway git repositories and an in-process redis."""

import shutil
import subprocess

import fakeredis
import pytest

from planner.lib.config import AppConfig, RedisConfig, StorageConfig
from planner.storage.redis_client import RedisStorageClient


def _git(cwd, *args):
    subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True)


@pytest.fixture
def git_repo(tmp_path):
    """A git repository with one commit on branch "main"."""
    if shutil.which("git") is None:
        pytest.skip("git not available")
    repo = tmp_path / "test-repo"
    repo.mkdir()
    _git(repo, "init")
    _git(repo, "config", "user.email", "test@example.com")
    _git(repo, "config", "user.name", "Test User")
    _git(repo, "symbolic-ref", "HEAD", "refs/heads/main")
    (repo / "README.md").write_text("# Test Repo\n")
    _git(repo, "add", "README.md")
    _git(repo, "commit", "-m", "Initial commit")
    return repo


@pytest.fixture
def redis_config():
    return RedisConfig(url="redis://fake", key_prefix="test-planning", ttl=3600)


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def redis_client(redis_config, fake_redis):
    return RedisStorageClient(redis_config, client=fake_redis)


@pytest.fixture
def redis_app_config(redis_config):
    return AppConfig(storage=StorageConfig(mode="redis", redis=redis_config))
