"""
Safe .env parser for planner settings.

Reads KEY=value lines without handing anything to a shell. Values that
look like shell syntax are refused rather than interpreted, so a settings
file can never run commands or expand other variables.
"""

import re
from pathlib import Path

KEY_RE = re.compile(r'^[A-Z][A-Z0-9_]*$')
SHELL_SYNTAX_RE = re.compile(r'`|\$[({]|;|&&|\|')
INLINE_COMMENT_RE = re.compile(r'\s+#.*$')

EXPORT_PREFIX = 'export '


def _unquote(value: str) -> tuple[str, bool]:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
        return value[1:-1], True
    return value, False


def parse_env(text: str, source: str = "<env>") -> dict[str, str]:
    """
    Parse KEY=value text.

    Blank lines and # comments are skipped, a leading "export " is
    allowed, and matching single or double quotes are stripped. Unquoted
    values may end in an inline " # comment".

    Raises:
        ValueError: on a malformed line, a bad key, or shell syntax in a value
    """
    env: dict[str, str] = {}
    for lineno, raw_line in enumerate(text.splitlines(), 1):
        line = raw_line.strip()
        if not line or line.startswith('#'):
            continue
        if line.startswith(EXPORT_PREFIX):
            line = line[len(EXPORT_PREFIX):].lstrip()

        key, sep, value = line.partition('=')
        if not sep:
            raise ValueError(f"{source}:{lineno}: expected KEY=value")
        key = key.strip()
        if not KEY_RE.match(key):
            raise ValueError(f"{source}:{lineno}: invalid key '{key}'")

        value, quoted = _unquote(value.strip())
        if not quoted:
            value = INLINE_COMMENT_RE.sub('', value)
        if SHELL_SYNTAX_RE.search(value):
            raise ValueError(f"{source}:{lineno}: shell syntax not allowed in value of {key}")

        env[key] = value
    return env


def load_env(filepath: str | Path) -> dict[str, str]:
    """
    Parse an env file.

    Raises:
        FileNotFoundError: if the file doesn't exist
        ValueError: see parse_env()
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Env file not found: {filepath}")
    return parse_env(path.read_text(), source=str(path))
