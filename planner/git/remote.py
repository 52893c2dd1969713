"""Git remote operations."""

from pathlib import Path

from planner.git.runner import git_output


def has_remote(repo: Path) -> bool:
    """Check if repo has any remotes configured."""
    return bool(git_output(["remote"], repo))


def get_remote_url(repo: Path, remote: str = "origin") -> str | None:
    """Get the fetch URL of a remote, or None if it isn't configured."""
    return git_output(["remote", "get-url", remote], repo) or None
