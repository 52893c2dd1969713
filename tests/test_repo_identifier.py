"""Tests for planner.lib.repo_identifier module."""

import re
import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from planner.lib.repo_identifier import (
    RepoIdentifierError,
    detect_current_branch,
    detect_repository_id,
    extract_repo_identifier,
    sanitize_branch_name,
)


class TestExtractRepoIdentifier:
    """Test URL normalization."""

    @pytest.mark.parametrize("url", [
        "https://github.com/user/repo.git",
        "git@github.com:user/repo.git",
        "https://github.com/user/repo",
        "ssh://git@github.com/user/repo.git",
        "http://github.com/user/repo",
    ])
    def test_github_shapes_normalize_identically(self, url):
        assert extract_repo_identifier(url) == "github.com/user/repo"

    def test_keeps_nested_groups(self):
        url = "https://gitlab.com/group/subgroup/project"
        assert extract_repo_identifier(url) == "gitlab.com/group/subgroup/project"

    def test_scp_style_with_other_user(self):
        assert extract_repo_identifier("deploy@git.example.com:team/app.git") == "git.example.com/team/app"

    def test_strips_whitespace(self):
        assert extract_repo_identifier("  https://github.com/user/repo.git\n") == "github.com/user/repo"

    def test_rejects_unparsable_url(self):
        with pytest.raises(RepoIdentifierError, match="Unable to parse"):
            extract_repo_identifier("not a url")

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            extract_repo_identifier("/local/path/only")


class TestDetectRepositoryId:
    """Test detect_repository_id fallbacks."""

    @patch("planner.lib.repo_identifier.get_remote_url")
    def test_uses_origin_remote(self, mock_remote, tmp_path):
        mock_remote.return_value = "git@github.com:erauner/homelab-k8s.git"
        assert detect_repository_id(tmp_path) == "github.com/erauner/homelab-k8s"

    @patch("planner.lib.repo_identifier.get_remote_url")
    def test_falls_back_to_directory_name(self, mock_remote, tmp_path):
        mock_remote.return_value = None
        project = tmp_path / "my-project"
        project.mkdir()
        assert detect_repository_id(project) == "my-project"

    @patch("planner.lib.repo_identifier.get_remote_url")
    def test_falls_back_when_remote_unparsable(self, mock_remote, tmp_path):
        mock_remote.return_value = "/srv/git/bare-repo"
        project = tmp_path / "checkout"
        project.mkdir()
        assert detect_repository_id(project) == "checkout"

    def test_real_repository_with_remote(self, git_repo):
        subprocess.run(
            ["git", "remote", "add", "origin", "https://github.com/test/repo.git"],
            cwd=git_repo, check=True, capture_output=True,
        )
        assert detect_repository_id(git_repo) == "github.com/test/repo"

    def test_real_repository_without_remote(self, git_repo):
        assert detect_repository_id(git_repo) == "test-repo"


class TestDetectCurrentBranch:
    """Test detect_current_branch."""

    @patch("planner.lib.repo_identifier.get_current_branch")
    def test_returns_default_outside_repo(self, mock_branch):
        mock_branch.return_value = None
        assert detect_current_branch(Path("/tmp")) == "default"

    @patch("planner.lib.repo_identifier.get_current_branch")
    def test_returns_main_for_empty_output(self, mock_branch):
        mock_branch.return_value = ""
        assert detect_current_branch(Path("/tmp")) == "main"

    def test_real_repository(self, git_repo):
        assert detect_current_branch(git_repo) == "main"

    def test_plain_directory(self, tmp_path):
        assert detect_current_branch(tmp_path) == "default"


class TestSanitizeBranchName:
    """Test sanitize_branch_name."""

    def test_replaces_unsafe_characters(self):
        result = sanitize_branch_name("feature/auth#123")
        assert result == "feature-auth-123"
        assert re.fullmatch(r"[A-Za-z0-9_-]+", result)

    def test_keeps_safe_characters(self):
        assert sanitize_branch_name("release_1-2") == "release_1-2"

    def test_deterministic(self):
        assert sanitize_branch_name("fix/bug@v2.0") == sanitize_branch_name("fix/bug@v2.0")
