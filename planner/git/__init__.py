"""Git operations used to identify repositories and branches.

Return type conventions:
- run_git() returns GitResult; callers check .success before using output.
- git_output() returns stripped stdout, or None on failure.
- Functions returning bool: True when the condition is met, False otherwise.
- Functions returning parsed values (str): Return None on failure.
"""

from planner.git.runner import run_git, git_output, GitResult
from planner.git.branch import get_current_branch
from planner.git.remote import has_remote, get_remote_url

__all__ = [
    "run_git",
    "git_output",
    "GitResult",
    "get_current_branch",
    "has_remote",
    "get_remote_url",
]
