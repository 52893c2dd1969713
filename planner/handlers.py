"""
Tool handlers for the planning server.

Each handler takes the storage factory and the raw argument mapping of one
tool call, resolves the partition for that call, performs the operation and
returns a JSON-serializable dict. No state is carried between calls: the
"current goal" is the partition's first goal unless goalId is given.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from planner.errors import ConfigurationError, NotFoundError
from planner.lib.config import load_config
from planner.lib.log import configure_logging
from planner.lib.planparse import format_plan_as_todos
from planner.lib.prompts import SEQUENTIAL_THINKING_PROMPT
from planner.lib.types import SessionContext, TodoInput
from planner.storage.base import StorageBackend
from planner.storage.factory import StorageFactory

logger = logging.getLogger(__name__)

NO_ACTIVE_GOAL = "No active goal. Start a new planning session first."

Args = Mapping[str, Any]


def create_factory(environ: Optional[Mapping[str, str]] = None, env_file: Optional[Path] = None) -> StorageFactory:
    """Load settings, set up logging and build the storage factory."""
    config = load_config(environ, env_file)
    configure_logging(config.log_level)
    logger.info(f"Planning storage mode: {config.storage.mode}")
    return StorageFactory(config)


def _require(args: Args, *names: str) -> None:
    missing = [name for name in names if args.get(name) is None]
    if missing:
        raise ValueError(f"Missing required argument(s): {', '.join(missing)}")


def _context_info(context: SessionContext) -> dict[str, Any]:
    return {
        "userId": context.user_id,
        "sessionId": context.session_id,
        "repository": context.repository.repo_identifier,
        "branch": context.repository.branch,
    }


def _goal_id(storage: StorageBackend, args: Args) -> str:
    if args.get("goalId"):
        return args["goalId"]
    goal = storage.current_goal()
    if goal is None:
        raise NotFoundError(NO_ACTIVE_GOAL)
    return goal.id


def start_planning(factory: StorageFactory, args: Args) -> dict[str, Any]:
    """
    Start a planning session, or continue the partition's existing one.

    A partition with todos is continued as is. Otherwise the goal becomes
    the partition's current goal: an existing todo-less current goal is
    re-described and reused rather than shadowed by a second goal that
    later calls without goalId would never reach.
    """
    _require(args, "goal")
    context, storage = factory.storage_for(args)

    todos = storage.get_all_todos()
    goal = storage.current_goal()
    if todos and goal is not None:
        status = "continued"
    else:
        if goal is None:
            goal = storage.create_goal(args["goal"])
        else:
            goal.description = args["goal"]
            storage.set_goal(goal)
        if storage.get_plan(goal.id) is None:
            storage.create_plan(goal.id)
        todos = []
        status = "started"

    return {
        **_context_info(context),
        "status": status,
        "goal": goal.to_dict(),
        "todos": [t.to_dict() for t in todos],
        "prompt": SEQUENTIAL_THINKING_PROMPT,
    }


def save_plan(factory: StorageFactory, args: Args) -> dict[str, Any]:
    """Parse a numbered plan and add its sections as todos to the current goal."""
    _require(args, "plan")
    context, storage = factory.storage_for(args)
    goal_id = _goal_id(storage, args)

    added = [storage.add_todo(goal_id, todo) for todo in format_plan_as_todos(args["plan"])]
    return {
        **_context_info(context),
        "goalId": goal_id,
        "count": len(added),
        "todos": [t.to_dict() for t in added],
    }


def add_todo(factory: StorageFactory, args: Args) -> dict[str, Any]:
    _require(args, "title", "description", "complexity")
    _, storage = factory.storage_for(args)
    todo = storage.add_todo(
        _goal_id(storage, args),
        TodoInput(
            title=args["title"],
            description=args["description"],
            complexity=args["complexity"],
            code_example=args.get("codeExample"),
        ),
    )
    return todo.to_dict()


def remove_todo(factory: StorageFactory, args: Args) -> dict[str, Any]:
    _require(args, "todoId")
    _, storage = factory.storage_for(args)
    storage.remove_todo(_goal_id(storage, args), args["todoId"])
    return {"removed": args["todoId"]}


def get_todos(factory: StorageFactory, args: Args) -> dict[str, Any]:
    """Todos of goalId, or of every plan in the partition."""
    context, storage = factory.storage_for(args)
    todos = storage.get_todos(args.get("goalId"))
    return {**_context_info(context), "todos": [t.to_dict() for t in todos]}


def update_todo_status(factory: StorageFactory, args: Args) -> dict[str, Any]:
    _require(args, "todoId", "isComplete")
    _, storage = factory.storage_for(args)
    todo = storage.update_todo_status(_goal_id(storage, args), args["todoId"], bool(args["isComplete"]))
    return todo.to_dict()


def get_goals(factory: StorageFactory, args: Args) -> dict[str, Any]:
    _, storage = factory.storage_for(args)
    return {"goals": {gid: g.to_dict() for gid, g in storage.get_goals().items()}}


def list_branch_todos(factory: StorageFactory, args: Args) -> dict[str, Any]:
    """Todo progress for every branch of the project (or repository)."""
    context, storage = factory.storage_for(args)
    return {
        "repository": context.repository.repo_identifier,
        "branches": [s.to_dict() for s in storage.branch_summaries()],
    }


def switch_branch(factory: StorageFactory, args: Args) -> dict[str, Any]:
    _require(args, "branch")
    context, storage = factory.storage_for(args)
    goal = storage.current_goal()
    return {
        **_context_info(context),
        "goal": goal.to_dict() if goal else None,
        "todos": [t.to_dict() for t in storage.get_all_todos()],
    }


def list_sessions(factory: StorageFactory, args: Args) -> dict[str, Any]:
    if not factory.is_redis:
        raise ConfigurationError("Sessions are only recorded in redis storage mode")
    _require(args, "userId")
    sessions = factory.session_manager.get_user_sessions(args["userId"])
    return {"sessions": [s.to_dict() for s in sessions]}


def health_check(factory: StorageFactory, args: Args) -> dict[str, Any]:
    return {"storageMode": factory.config.storage.mode, "healthy": factory.health_check()}


TOOL_HANDLERS: dict[str, Callable[[StorageFactory, Args], dict[str, Any]]] = {
    "start_planning": start_planning,
    "save_plan": save_plan,
    "add_todo": add_todo,
    "remove_todo": remove_todo,
    "get_todos": get_todos,
    "update_todo_status": update_todo_status,
    "get_goals": get_goals,
    "list_branch_todos": list_branch_todos,
    "switch_branch": switch_branch,
    "list_sessions": list_sessions,
    "health_check": health_check,
}


def call_tool(factory: StorageFactory, name: str, args: Optional[Args] = None) -> dict[str, Any]:
    """
    Dispatch one tool call.

    Raises:
        KeyError: if name is not a known tool
    """
    if name not in TOOL_HANDLERS:
        raise KeyError(f"Unknown tool: {name}")
    return TOOL_HANDLERS[name](factory, args or {})
