"""Abstract base class for planning storage backends.

A backend persists one partition (StorageData) and exposes goal, plan and
todo CRUD over it. Subclasses supply two primitives:

- load(): the current partition document
- _update(mutate): read the document, apply mutate() to it, write it back
  as a whole, holding whatever exclusion the backend offers

Every public operation is built from those, so both backends share the
same semantics, including the NotFound rules.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, TypeVar

from planner.errors import NotFoundError
from planner.lib.planparse import plan_lines_as_todos
from planner.lib.types import (
    BranchSummary,
    Goal,
    ImplementationPlan,
    StorageData,
    Todo,
    TodoInput,
    new_id,
    now_iso,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

PLAN_FROM_TEXT_GOAL = "Plan from text"


def _require_plan(data: StorageData, goal_id: str) -> ImplementationPlan:
    plan = data.plans.get(goal_id)
    if plan is None:
        raise NotFoundError(f"No plan found for goal {goal_id}")
    return plan


class StorageBackend(ABC):
    """Goal/plan/todo storage for one partition."""

    def __init__(self, branch: str):
        self.branch = branch

    @property
    @abstractmethod
    def partition_key(self) -> str:
        """Identifier of the partition this handle is bound to."""
        pass

    @abstractmethod
    def initialize(self) -> None:
        """Prepare the partition for use. Safe to call more than once."""
        pass

    @abstractmethod
    def load(self) -> StorageData:
        """Return the partition document as currently persisted."""
        pass

    @abstractmethod
    def _update(self, mutate: Callable[[StorageData], T]) -> T:
        """Apply mutate() to the partition and persist the whole document."""
        pass

    @abstractmethod
    def branch_summaries(self) -> list[BranchSummary]:
        """Todo progress for every branch partition of the same project."""
        pass

    def _stamp_goal(self, goal: Goal) -> Goal:
        """Hook for backends that tag goals with their repository/branch."""
        return goal

    # Goals

    def create_goal(self, description: str) -> Goal:
        goal = self._stamp_goal(Goal(id=new_id(), description=description, created_at=now_iso()))

        def apply(data: StorageData) -> None:
            data.goals[goal.id] = goal

        self._update(apply)
        logger.debug(f"Created goal {goal.id} in {self.partition_key}")
        return goal

    def set_goal(self, goal: Goal) -> None:
        """Insert or replace a full goal record."""
        goal = self._stamp_goal(goal)

        def apply(data: StorageData) -> None:
            data.goals[goal.id] = goal

        self._update(apply)

    def get_goal(self, goal_id: str) -> Optional[Goal]:
        return self.load().goals.get(goal_id)

    def get_goals(self) -> dict[str, Goal]:
        return self.load().goals

    def current_goal(self) -> Optional[Goal]:
        """The partition's current goal: the first one in insertion order."""
        goals = self.get_goals()
        return next(iter(goals.values()), None)

    # Plans

    def create_plan(self, goal_id: str) -> ImplementationPlan:
        """Create an empty plan for goal_id. The goal itself is not checked."""
        plan = ImplementationPlan(goal_id=goal_id, todos=[], updated_at=now_iso())

        def apply(data: StorageData) -> None:
            data.plans[goal_id] = plan

        self._update(apply)
        return plan

    def get_plan(self, goal_id: str) -> Optional[ImplementationPlan]:
        return self.load().plans.get(goal_id)

    # Todos

    def add_todo(self, goal_id: str, todo: TodoInput) -> Todo:
        """
        Append a new todo to the plan of goal_id.

        Raises:
            NotFoundError: if goal_id has no plan
        """
        new_todo = Todo.create(todo)

        def apply(data: StorageData) -> None:
            plan = _require_plan(data, goal_id)
            plan.todos.append(new_todo)
            plan.updated_at = now_iso()

        self._update(apply)
        return new_todo

    def get_todos(self, goal_id: Optional[str] = None) -> list[Todo]:
        """Todos of one plan (empty if it doesn't exist), or of every plan."""
        data = self.load()
        if goal_id is not None:
            plan = data.plans.get(goal_id)
            return list(plan.todos) if plan else []
        return data.all_todos()

    def get_all_todos(self) -> list[Todo]:
        return self.get_todos()

    def update_todo_status(self, goal_id: str, todo_id: str, is_complete: bool) -> Todo:
        """
        Set the completion flag of a todo.

        Raises:
            NotFoundError: if goal_id has no plan or the plan has no such todo
        """
        def apply(data: StorageData) -> Todo:
            plan = _require_plan(data, goal_id)
            todo = plan.find_todo(todo_id)
            if todo is None:
                raise NotFoundError(f"No todo found with id {todo_id}")
            timestamp = now_iso()
            todo.is_complete = is_complete
            todo.updated_at = timestamp
            plan.updated_at = timestamp
            return todo

        return self._update(apply)

    def remove_todo(self, goal_id: str, todo_id: str) -> None:
        """
        Remove a todo from the plan of goal_id.

        A todo_id that isn't in the plan leaves it unchanged.

        Raises:
            NotFoundError: if goal_id has no plan
        """
        def apply(data: StorageData) -> None:
            plan = _require_plan(data, goal_id)
            remaining = [t for t in plan.todos if t.id != todo_id]
            if len(remaining) == len(plan.todos):
                logger.debug(f"Todo {todo_id} not in plan {goal_id}, nothing removed")
                return
            plan.todos = remaining
            plan.updated_at = now_iso()

        self._update(apply)

    def update_todo(self, todo_id: str, updates: dict[str, Any]) -> Todo:
        """
        Merge fields into a todo, searching every plan of the partition.

        Raises:
            ValueError: if updates names a field that can't be changed
            NotFoundError: if no plan contains todo_id
        """
        unknown = set(updates) - set(Todo.MUTABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update todo fields: {', '.join(sorted(unknown))}")

        def apply(data: StorageData) -> Todo:
            for plan in data.plans.values():
                todo = plan.find_todo(todo_id)
                if todo is None:
                    continue
                for name, value in updates.items():
                    setattr(todo, name, value)
                timestamp = now_iso()
                todo.updated_at = timestamp
                plan.updated_at = timestamp
                return todo
            raise NotFoundError(f"Todo with id {todo_id} not found")

        return self._update(apply)

    def save_plan(self, plan_text: str) -> list[Todo]:
        """
        Add one todo per non-empty line of plan_text to the current goal.

        Creates the goal and its plan when missing. Not transactional: todos
        added before a failure stay added.
        """
        todo_inputs = plan_lines_as_todos(plan_text)
        if not todo_inputs:
            return []

        goal = self.current_goal()
        if goal is None:
            goal = self.create_goal(PLAN_FROM_TEXT_GOAL)
        if self.get_plan(goal.id) is None:
            self.create_plan(goal.id)

        return [self.add_todo(goal.id, todo) for todo in todo_inputs]
