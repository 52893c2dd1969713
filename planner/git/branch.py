"""Git branch operations."""

from pathlib import Path

from planner.git.runner import git_output


def get_current_branch(repo: Path) -> str | None:
    """Get the checked-out branch name, or None outside a repository.

    Returns an empty string when git succeeds but prints nothing.
    Detached HEAD reports "HEAD", as git itself does.
    """
    return git_output(["rev-parse", "--abbrev-ref", "HEAD"], repo)
