"""Tests for planner.lib.planparse module."""

from planner.lib.planparse import format_plan_as_todos, plan_lines_as_todos


class TestPlanLinesAsTodos:
    """Test the one-todo-per-line parser used by save_plan."""

    def test_one_todo_per_non_empty_line(self):
        todos = plan_lines_as_todos("Set up project\n\n  Write storage layer  \n")
        assert [t.title for t in todos] == ["Step 1", "Step 2"]
        assert [t.description for t in todos] == ["Set up project", "Write storage layer"]
        assert all(t.complexity == 3 for t in todos)
        assert all(t.code_example is None for t in todos)

    def test_blank_text_gives_nothing(self):
        assert plan_lines_as_todos("   \n\n") == []


class TestFormatPlanAsTodos:
    """Test the numbered-section parser."""

    def test_parses_numbered_sections(self):
        plan = (
            "1. Create data model\n"
            "Define goal and todo types.\n"
            "Complexity: 3\n"
            "2. Add file storage\n"
            "Persist one document per branch.\n"
        )
        todos = format_plan_as_todos(plan)
        assert len(todos) == 2
        assert todos[0].title == "Create data model"
        assert todos[0].description == "Define goal and todo types."
        assert todos[0].complexity == 3
        assert todos[1].title == "Add file storage"
        assert todos[1].complexity == 5

    def test_extracts_code_example(self):
        plan = (
            "1. Add storage class\n"
            "Complexity: 7\n"
            "```python\n"
            "class Storage:\n"
            "    pass\n"
            "```\n"
            "Keep it small.\n"
        )
        todo = format_plan_as_todos(plan)[0]
        assert todo.complexity == 7
        assert todo.code_example == "class Storage:\n    pass\n"
        assert todo.description == "Keep it small."
        assert "```" not in todo.description

    def test_ignores_preamble(self):
        plan = "Here is the plan:\n\n1. Only step\n"
        todos = format_plan_as_todos(plan)
        assert [t.title for t in todos] == ["Only step"]

    def test_empty_plan(self):
        assert format_plan_as_todos("") == []
        assert format_plan_as_todos("no numbered items here") == []
