"""Abstract interfaces for the T-shirt Estimator."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .models import (
    JiraProject,
    NewTask,
    Session,
    Task,
    TaskDraft,
    TShirtSize,
    User,
    Vote,
)


class DatabaseInterface(ABC):
    """Interface for task, session and user storage."""

    @abstractmethod
    def create_task(self, task: NewTask) -> Task: ...

    @abstractmethod
    def create_tasks(self, tasks: list[NewTask]) -> list[Task]: ...

    @abstractmethod
    def get_task(self, task_id: int) -> Task | None: ...

    @abstractmethod
    def get_all_tasks(self) -> list[Task]: ...

    @abstractmethod
    def get_recent_tasks(self, limit: int) -> list[Task]: ...

    @abstractmethod
    def get_finalized_tasks(self) -> list[Task]: ...

    @abstractmethod
    def get_session_tasks(self, session_id: int) -> list[Task]: ...

    @abstractmethod
    def update_task_feedback(self, task_id: int, feedback: str) -> Task | None: ...

    @abstractmethod
    def update_task_size(self, task_id: int, size: TShirtSize) -> Task | None: ...

    @abstractmethod
    def update_task_votes(
        self,
        task_id: int,
        votes: list[Vote],
        average_size: TShirtSize | None,
        average_points: int | None,
    ) -> Task | None: ...

    @abstractmethod
    def finalize_task(self, task_id: int, final_size: TShirtSize) -> Task | None: ...

    @abstractmethod
    def create_session(self, name: str) -> Session: ...

    @abstractmethod
    def get_session(self, session_id: int) -> Session | None: ...

    @abstractmethod
    def get_active_sessions(self) -> list[Session]: ...

    @abstractmethod
    def close_session(self, session_id: int) -> Session | None: ...

    @abstractmethod
    def create_user(self, username: str, password: str, display_name: str | None) -> User: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> User | None: ...

    @abstractmethod
    def get_users(self) -> list[User]: ...


class ParserInterface(ABC):
    """Interface for bulk import parsing."""

    @abstractmethod
    def parse_csv(self, csv_data: str) -> list[TaskDraft]: ...


class JiraAPIInterface(ABC):
    """Interface for Jira API operations."""

    @abstractmethod
    def get_projects(self) -> list[JiraProject]: ...

    @abstractmethod
    def fetch_issues_from_project(
        self, project_key: str, max_results: int = 50
    ) -> list[TaskDraft]: ...

    @abstractmethod
    def fetch_issues_from_jql(self, jql: str, max_results: int = 50) -> list[TaskDraft]: ...


class BroadcasterInterface(ABC):
    """Interface for notifying connected clients of state changes."""

    @abstractmethod
    def publish(self, message: dict[str, Any]) -> None: ...
