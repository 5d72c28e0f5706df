"""Sessions, tasks and users."""

import sqlite3

from ..base import Migration

# Votes and similar tasks are JSON arrays stored as text.
TABLES: dict[str, str] = {
    "sessions": """
        CREATE TABLE IF NOT EXISTS sessions (
            id INTEGER PRIMARY KEY,
            name TEXT NOT NULL,
            created_at TEXT NOT NULL,
            is_active INTEGER NOT NULL DEFAULT 1
        )
    """,
    "tasks": """
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY,
            title TEXT NOT NULL,
            description TEXT NOT NULL,
            size TEXT NOT NULL,
            points INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            confidence INTEGER NOT NULL,
            similar_tasks TEXT NOT NULL DEFAULT '[]',
            feedback TEXT,
            session_id INTEGER REFERENCES sessions (id),
            is_finalized INTEGER NOT NULL DEFAULT 0,
            votes TEXT NOT NULL DEFAULT '[]',
            average_size TEXT,
            average_points INTEGER
        )
    """,
    "users": """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY,
            username TEXT NOT NULL UNIQUE,
            password TEXT NOT NULL,
            display_name TEXT
        )
    """,
}

COLUMNS: dict[str, tuple[str, ...]] = {
    "sessions": ("id", "name", "created_at", "is_active"),
    "tasks": (
        "id",
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
    ),
    "users": ("id", "username", "password", "display_name"),
}


class InitialSchemaMigration(Migration):
    version = "001"
    description = "Create sessions, tasks and users tables"

    def up(self, conn: sqlite3.Connection) -> None:
        self.run_sql(conn, *TABLES.values())

    def down(self, conn: sqlite3.Connection) -> None:
        # tasks references sessions
        self.run_sql(conn, *(f"DROP TABLE IF EXISTS {table}" for table in reversed(TABLES)))

    def validate(self, conn: sqlite3.Connection) -> bool:
        return all(self.has_table(conn, table, columns) for table, columns in COLUMNS.items())
