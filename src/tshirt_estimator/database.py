"""SQLite storage with migration-managed schema for the T-shirt Estimator."""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from .exceptions import DatabaseError
from .interfaces import DatabaseInterface
from .migrations.runner import MigrationRunner
from .migrations.versions import ALL_MIGRATIONS
from .models import NewTask, Session, Task, TShirtSize, User, Vote, points_for

logger = structlog.get_logger(__name__)

_TASK_COLUMNS = (
    "title",
    "description",
    "size",
    "points",
    "created_at",
    "confidence",
    "similar_tasks",
    "feedback",
    "session_id",
    "is_finalized",
    "votes",
    "average_size",
    "average_points",
)

_INSERT_TASK_SQL = (
    f"INSERT INTO tasks ({', '.join(_TASK_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _TASK_COLUMNS)})"
)


def _task_params(task: NewTask) -> tuple[Any, ...]:
    return (
        task.title,
        task.description,
        task.size.value,
        task.points,
        task.created_at.isoformat(),
        task.confidence,
        json.dumps([similar.model_dump(mode="json") for similar in task.similar_tasks]),
        task.feedback,
        task.session_id,
        int(task.is_finalized),
        json.dumps([vote.model_dump(mode="json") for vote in task.votes]),
        task.average_size.value if task.average_size else None,
        task.average_points,
    )


def _row_to_task(row: sqlite3.Row) -> Task:
    data = dict(row)
    data["similar_tasks"] = json.loads(data["similar_tasks"] or "[]")
    data["votes"] = json.loads(data["votes"] or "[]")
    data["is_finalized"] = bool(data["is_finalized"])
    data["created_at"] = datetime.fromisoformat(data["created_at"])
    return Task.model_validate(data)


def _row_to_session(row: sqlite3.Row) -> Session:
    data = dict(row)
    data["is_active"] = bool(data["is_active"])
    data["created_at"] = datetime.fromisoformat(data["created_at"])
    return Session.model_validate(data)


class DatabaseManager(DatabaseInterface):
    """Database manager that uses the migration system for schema management."""

    def __init__(self, db_path: Path, auto_migrate: bool = True):
        """Initialize database manager with migration support.

        Args:
            db_path: Path to the SQLite database file
            auto_migrate: Whether to automatically run pending migrations on startup
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self.migration_runner = MigrationRunner(self.db_path)
        self.migration_runner.register_migrations(ALL_MIGRATIONS)

        if auto_migrate:
            applied = self.migration_runner.run_migrations()
            if applied:
                logger.info("Applied migrations on startup", migrations=applied)

        logger.info("Database initialized with migration system", db_path=str(self.db_path))

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _fetch_tasks(self, sql: str, params: tuple[Any, ...] = ()) -> list[Task]:
        with self._connect() as conn:
            return [_row_to_task(row) for row in conn.execute(sql, params).fetchall()]

    def _update_task(self, task_id: int, assignments: dict[str, Any]) -> Task | None:
        set_clause = ", ".join(f"{column} = ?" for column in assignments)
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE tasks SET {set_clause} WHERE id = ?",  # nosec B608 - fixed column names
                (*assignments.values(), task_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                return None
        return self.get_task(task_id)

    # Tasks

    def create_task(self, task: NewTask) -> Task:
        """Insert a single task and return it with its ID."""
        with self._connect() as conn:
            cursor = conn.execute(_INSERT_TASK_SQL, _task_params(task))
            conn.commit()
            task_id = cursor.lastrowid
            if task_id is None:
                raise DatabaseError("Failed to create task: no ID returned")

        logger.info("Task created", task_id=task_id, size=task.size.value)
        return Task(id=task_id, **task.model_dump())

    def create_tasks(self, tasks: list[NewTask]) -> list[Task]:
        """Insert tasks in one transaction, preserving input order.

        Args:
            tasks: Tasks to insert

        Returns:
            Stored tasks in the same order as the input
        """
        created: list[Task] = []
        with self._connect() as conn:
            try:
                for task in tasks:
                    cursor = conn.execute(_INSERT_TASK_SQL, _task_params(task))
                    if cursor.lastrowid is None:
                        raise DatabaseError("Failed to create task: no ID returned")
                    created.append(Task(id=cursor.lastrowid, **task.model_dump()))
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise DatabaseError(f"Bulk task insert failed: {e}") from e

        logger.info("Tasks created in bulk", task_count=len(created))
        return created

    def get_task(self, task_id: int) -> Task | None:
        tasks = self._fetch_tasks("SELECT * FROM tasks WHERE id = ?", (task_id,))
        return tasks[0] if tasks else None

    def get_all_tasks(self) -> list[Task]:
        return self._fetch_tasks("SELECT * FROM tasks ORDER BY id")

    def get_recent_tasks(self, limit: int) -> list[Task]:
        """Finalized tasks, newest first."""
        return self._fetch_tasks(
            "SELECT * FROM tasks WHERE is_finalized = 1 "
            "ORDER BY created_at DESC, id DESC LIMIT ?",
            (limit,),
        )

    def get_finalized_tasks(self) -> list[Task]:
        return self._fetch_tasks("SELECT * FROM tasks WHERE is_finalized = 1 ORDER BY id")

    def get_session_tasks(self, session_id: int) -> list[Task]:
        return self._fetch_tasks(
            "SELECT * FROM tasks WHERE session_id = ? ORDER BY id", (session_id,)
        )

    def update_task_feedback(self, task_id: int, feedback: str) -> Task | None:
        return self._update_task(task_id, {"feedback": feedback})

    def update_task_size(self, task_id: int, size: TShirtSize) -> Task | None:
        return self._update_task(task_id, {"size": size.value, "points": points_for(size)})

    def update_task_votes(
        self,
        task_id: int,
        votes: list[Vote],
        average_size: TShirtSize | None,
        average_points: int | None,
    ) -> Task | None:
        return self._update_task(
            task_id,
            {
                "votes": json.dumps([vote.model_dump(mode="json") for vote in votes]),
                "average_size": average_size.value if average_size else None,
                "average_points": average_points,
            },
        )

    def finalize_task(self, task_id: int, final_size: TShirtSize) -> Task | None:
        task = self._update_task(
            task_id,
            {"size": final_size.value, "points": points_for(final_size), "is_finalized": 1},
        )
        if task:
            logger.info("Task finalized", task_id=task_id, size=final_size.value)
        return task

    # Sessions

    def create_session(self, name: str) -> Session:
        created_at = datetime.now(UTC)
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT INTO sessions (name, created_at, is_active) VALUES (?, ?, 1)",
                (name, created_at.isoformat()),
            )
            conn.commit()
            session_id = cursor.lastrowid
            if session_id is None:
                raise DatabaseError("Failed to create session: no ID returned")

        logger.info("Session created", session_id=session_id, name=name)
        return Session(id=session_id, name=name, created_at=created_at, is_active=True)

    def get_session(self, session_id: int) -> Session | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return _row_to_session(row) if row else None

    def get_active_sessions(self) -> list[Session]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM sessions WHERE is_active = 1 ORDER BY id").fetchall()
        return [_row_to_session(row) for row in rows]

    def close_session(self, session_id: int) -> Session | None:
        with self._connect() as conn:
            cursor = conn.execute("UPDATE sessions SET is_active = 0 WHERE id = ?", (session_id,))
            conn.commit()
            if cursor.rowcount == 0:
                return None

        logger.info("Session closed", session_id=session_id)
        return self.get_session(session_id)

    # Users

    def create_user(self, username: str, password: str, display_name: str | None) -> User:
        with self._connect() as conn:
            try:
                cursor = conn.execute(
                    "INSERT INTO users (username, password, display_name) VALUES (?, ?, ?)",
                    (username, password, display_name),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise DatabaseError(f"Username already exists: {username}") from e
            user_id = cursor.lastrowid
            if user_id is None:
                raise DatabaseError("Failed to create user: no ID returned")

        logger.info("User created", user_id=user_id, username=username)
        return User(id=user_id, username=username, password=password, display_name=display_name)

    def get_user_by_username(self, username: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        return User.model_validate(dict(row)) if row else None

    def get_users(self) -> list[User]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [User.model_validate(dict(row)) for row in rows]
