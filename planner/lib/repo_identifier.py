"""
Repository and branch identification.

Derives the (repository, branch) pair used as a partition key from a
working directory, falling back to deterministic defaults when the
directory is not a git checkout.
"""

import logging
import re
from pathlib import Path

from planner.git import get_current_branch, get_remote_url

logger = logging.getLogger(__name__)

DEFAULT_BRANCH = "default"

# Tried in order; the first match wins.
REMOTE_URL_PATTERNS = [
    re.compile(r"https?://([^/]+)/(.+?)(?:\.git)?$"),
    re.compile(r"[^@/\s]+@([^:]+):(.+?)(?:\.git)?$"),
    re.compile(r"ssh://[^@/\s]+@([^/]+)/(.+?)(?:\.git)?$"),
]

UNSAFE_BRANCH_CHARS = re.compile(r"[^A-Za-z0-9_-]")


class RepoIdentifierError(ValueError):
    """Remote URL does not match any supported shape."""
    pass


def extract_repo_identifier(remote_url: str) -> str:
    """
    Normalize a git remote URL to "host/owner/name".

    https://github.com/user/repo.git -> github.com/user/repo
    git@github.com:user/repo.git     -> github.com/user/repo
    https://gitlab.com/group/sub/app -> gitlab.com/group/sub/app

    Raises:
        RepoIdentifierError: if no supported URL shape matches
    """
    url = remote_url.strip()
    for pattern in REMOTE_URL_PATTERNS:
        match = pattern.search(url)
        if match:
            return f"{match.group(1)}/{match.group(2)}"
    raise RepoIdentifierError(f"Unable to parse repository URL: {remote_url}")


def detect_repository_id(project_path: Path | None = None) -> str:
    """Repository identifier for a directory, or its basename if there is no usable remote."""
    path = Path(project_path) if project_path else Path.cwd()
    remote_url = get_remote_url(path)
    if remote_url:
        try:
            return extract_repo_identifier(remote_url)
        except RepoIdentifierError as e:
            logger.debug(f"{e}; using directory name")
    return path.resolve().name or str(path)


def detect_current_branch(project_path: Path | None = None) -> str:
    """Checked-out branch for a directory, or "default" outside a repository."""
    path = Path(project_path) if project_path else Path.cwd()
    branch = get_current_branch(path)
    if branch is None:
        logger.debug(f"{path} is not a git repository, using branch '{DEFAULT_BRANCH}'")
        return DEFAULT_BRANCH
    return branch or "main"


def sanitize_branch_name(branch: str) -> str:
    """Make a branch name safe for filenames: feature/auth#1 -> feature-auth-1."""
    return UNSAFE_BRANCH_CHARS.sub("-", branch)
