"""
Plan text parser.

Turns free-form implementation plans into todo inputs. Pure functions,
no storage access.
"""

import re

from planner.lib.types import TodoInput

DEFAULT_LINE_COMPLEXITY = 3
DEFAULT_SECTION_COMPLEXITY = 5

SECTION_SPLIT_RE = re.compile(r'(?=^\d+\.\s)', re.MULTILINE)
SECTION_START_RE = re.compile(r'^\d+\.\s')
HEADING_RE = re.compile(r'^\d+\.\s*[^\n]*\n?')
COMPLEXITY_RE = re.compile(r'Complexity:\s*(\d+)')
CODE_BLOCK_RE = re.compile(r'```[\s\S]*?```')
FENCE_RE = re.compile(r'^```[A-Za-z0-9_+-]*\n?|```$')


def plan_lines_as_todos(plan: str) -> list[TodoInput]:
    """One todo per non-empty line: "Step 1", "Step 2", ... at low complexity."""
    lines = [line.strip() for line in plan.splitlines() if line.strip()]
    return [
        TodoInput(
            title=f"Step {index}",
            description=line,
            complexity=DEFAULT_LINE_COMPLEXITY,
        )
        for index, line in enumerate(lines, 1)
    ]


def format_plan_as_todos(plan: str) -> list[TodoInput]:
    """
    Parse a numbered plan into todos.

    Each section starts with "N. Title". Inside a section, "Complexity: N"
    sets the complexity (default 5) and the first fenced code block becomes
    the code example. Whatever remains is the description. Text before
    the first numbered heading is ignored.

    Example:
        1. Add storage layer
        Complexity: 7
        ```python
        class Storage: ...
        ```
        Persist todos per branch.
    """
    if not plan or not plan.strip():
        return []

    todos = []
    for section in SECTION_SPLIT_RE.split(plan):
        section = section.strip()
        if not section or not SECTION_START_RE.match(section):
            continue

        first_line = section.split('\n', 1)[0]
        title = re.sub(r'^\d+\.\s*', '', first_line).strip()

        complexity_match = COMPLEXITY_RE.search(section)
        complexity = int(complexity_match.group(1)) if complexity_match else DEFAULT_SECTION_COMPLEXITY

        code_match = CODE_BLOCK_RE.search(section)
        code_example = FENCE_RE.sub('', code_match.group(0)) if code_match else None

        description = HEADING_RE.sub('', section, count=1)
        description = COMPLEXITY_RE.sub('', description)
        description = CODE_BLOCK_RE.sub('', description).strip()

        todos.append(TodoInput(
            title=title,
            description=description,
            complexity=complexity,
            code_example=code_example,
        ))

    return todos
