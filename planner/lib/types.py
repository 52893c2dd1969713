"""
Shared data types for goals, plans, todos and sessions.

Attributes are snake_case; to_dict()/from_dict() use the camelCase keys of
the persisted JSON documents.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def now_iso() -> str:
    """Current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class TodoInput:
    """Caller-supplied fields of a new todo."""
    title: str
    description: str
    complexity: float
    code_example: Optional[str] = None


@dataclass
class Todo:
    id: str
    title: str
    description: str
    complexity: float
    is_complete: bool = False
    code_example: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""

    # Fields update_todo() may change
    MUTABLE_FIELDS = ("title", "description", "complexity", "code_example", "is_complete")

    @classmethod
    def create(cls, todo: TodoInput) -> "Todo":
        timestamp = now_iso()
        return cls(
            id=new_id(),
            title=todo.title,
            description=todo.description,
            complexity=todo.complexity,
            code_example=todo.code_example,
            is_complete=False,
            created_at=timestamp,
            updated_at=timestamp,
        )

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "complexity": self.complexity,
            "isComplete": self.is_complete,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.code_example is not None:
            data["codeExample"] = self.code_example
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Todo":
        return cls(
            id=data["id"],
            title=data["title"],
            description=data.get("description", ""),
            complexity=data.get("complexity", 0),
            is_complete=data.get("isComplete", False),
            code_example=data.get("codeExample"),
            created_at=data.get("createdAt", ""),
            updated_at=data.get("updatedAt", ""),
        )


@dataclass
class Goal:
    id: str
    description: str
    created_at: str
    repository: Optional[str] = None
    branch: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "id": self.id,
            "description": self.description,
            "createdAt": self.created_at,
        }
        if self.repository is not None:
            data["repository"] = self.repository
        if self.branch is not None:
            data["branch"] = self.branch
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Goal":
        return cls(
            id=data["id"],
            description=data["description"],
            created_at=data.get("createdAt", ""),
            repository=data.get("repository"),
            branch=data.get("branch"),
        )


@dataclass
class ImplementationPlan:
    goal_id: str
    todos: list[Todo] = field(default_factory=list)
    updated_at: str = ""

    def find_todo(self, todo_id: str) -> Optional[Todo]:
        for todo in self.todos:
            if todo.id == todo_id:
                return todo
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "goalId": self.goal_id,
            "todos": [t.to_dict() for t in self.todos],
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImplementationPlan":
        return cls(
            goal_id=data["goalId"],
            todos=[Todo.from_dict(t) for t in data.get("todos", [])],
            updated_at=data.get("updatedAt", ""),
        )


@dataclass
class StorageData:
    """One partition: every goal and plan for a repository/branch (and user)."""
    branch: str
    goals: dict[str, Goal] = field(default_factory=dict)
    plans: dict[str, ImplementationPlan] = field(default_factory=dict)
    last_updated: Optional[str] = None
    project_path: Optional[str] = None  # file backend
    repository: Optional[str] = None    # key-value backend

    def all_todos(self) -> list[Todo]:
        """Todos of every plan, in plan-then-item order."""
        return [todo for plan in self.plans.values() for todo in plan.todos]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"branch": self.branch}
        if self.project_path is not None:
            data["projectPath"] = self.project_path
        if self.repository is not None:
            data["repository"] = self.repository
        data["goals"] = {gid: g.to_dict() for gid, g in self.goals.items()}
        data["plans"] = {gid: p.to_dict() for gid, p in self.plans.items()}
        data["lastUpdated"] = self.last_updated
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StorageData":
        return cls(
            branch=data["branch"],
            goals={gid: Goal.from_dict(g) for gid, g in (data.get("goals") or {}).items()},
            plans={gid: ImplementationPlan.from_dict(p) for gid, p in (data.get("plans") or {}).items()},
            last_updated=data.get("lastUpdated"),
            project_path=data.get("projectPath"),
            repository=data.get("repository"),
        )


@dataclass
class BranchSummary:
    """Todo progress for one branch partition."""
    branch: str
    total: int
    completed: int

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 0
        return round(self.completed / self.total * 100)

    def to_dict(self) -> dict[str, Any]:
        return {
            "branch": self.branch,
            "total": self.total,
            "completed": self.completed,
            "percentage": self.percentage,
        }

    @classmethod
    def from_todos(cls, branch: str, todos: list[Todo]) -> "BranchSummary":
        return cls(
            branch=branch,
            total=len(todos),
            completed=sum(1 for t in todos if t.is_complete),
        )


@dataclass
class RepositoryContext:
    repo_identifier: str
    branch: str
    remote_url: Optional[str] = None
    local_path: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = {"repoIdentifier": self.repo_identifier, "branch": self.branch}
        if self.remote_url is not None:
            data["remoteUrl"] = self.remote_url
        if self.local_path is not None:
            data["localPath"] = self.local_path
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RepositoryContext":
        return cls(
            repo_identifier=data["repoIdentifier"],
            branch=data["branch"],
            remote_url=data.get("remoteUrl"),
            local_path=data.get("localPath"),
        )


@dataclass
class SessionContext:
    """Ties a session id to the (user, repository, branch) partition it works on."""
    user_id: str
    session_id: str
    repository: RepositoryContext
    created_at: str
    last_accessed: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "sessionId": self.session_id,
            "repository": self.repository.to_dict(),
            "createdAt": self.created_at,
            "lastAccessed": self.last_accessed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionContext":
        return cls(
            user_id=data["userId"],
            session_id=data["sessionId"],
            repository=RepositoryContext.from_dict(data["repository"]),
            created_at=data.get("createdAt", ""),
            last_accessed=data.get("lastAccessed", ""),
        )
