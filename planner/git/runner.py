"""Git subprocess wrapper. Failures are returned, never raised."""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Identity lookups are quick; a hung git (credential prompt, NFS) must not stall a tool call.
DEFAULT_TIMEOUT = 10

EXIT_TIMED_OUT = -1
EXIT_NOT_RUNNABLE = 127


@dataclass
class GitResult:
    """Outcome of one git invocation."""
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def run_git(args: list[str], cwd: Path, timeout: int = DEFAULT_TIMEOUT) -> GitResult:
    """
    Run `git -C cwd <args>`.

    A timeout yields returncode -1 with timed_out set. A git binary that
    can't be started, or a cwd that doesn't exist, yields returncode 127.
    """
    try:
        proc = subprocess.run(
            ["git", "-C", str(cwd), *args],
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"git {' '.join(args)} timed out after {timeout}s in {cwd}")
        return GitResult(EXIT_TIMED_OUT, "", f"Command timed out after {timeout}s", timed_out=True)
    except OSError as e:
        return GitResult(EXIT_NOT_RUNNABLE, "", str(e))
    return GitResult(proc.returncode, proc.stdout, proc.stderr)


def git_output(args: list[str], cwd: Path) -> str | None:
    """Stripped stdout of a successful git command, or None if it failed."""
    result = run_git(args, cwd)
    if not result.success:
        logger.debug(f"git {' '.join(args)} failed in {cwd}: {result.stderr.strip()}")
        return None
    return result.stdout.strip()
