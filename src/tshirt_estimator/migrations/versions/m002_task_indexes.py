"""Index the columns used by session listings and the recent-tasks feed."""

import sqlite3

from ..base import Migration

INDEXES: dict[str, str] = {
    "idx_tasks_session_id": "tasks(session_id)",
    "idx_tasks_finalized_created": "tasks(is_finalized, created_at)",
    "idx_sessions_is_active": "sessions(is_active)",
}


class TaskIndexesMigration(Migration):
    version = "002"
    description = "Add indexes for session task listings and recent finalized tasks"

    def up(self, conn: sqlite3.Connection) -> None:
        self.run_sql(
            conn, *(f"CREATE INDEX IF NOT EXISTS {name} ON {on}" for name, on in INDEXES.items())
        )

    def down(self, conn: sqlite3.Connection) -> None:
        self.run_sql(conn, *(f"DROP INDEX IF EXISTS {name}" for name in INDEXES))

    def validate(self, conn: sqlite3.Connection) -> bool:
        return self.has_indexes(conn, *INDEXES)
