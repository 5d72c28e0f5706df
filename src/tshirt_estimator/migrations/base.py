"""Base class for versioned SQLite schema migrations."""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import ClassVar

import structlog

logger = structlog.get_logger(__name__)


class MigrationError(Exception):
    """Raised when a migration cannot be applied, validated or rolled back."""


class Migration(ABC):
    """One schema change.

    Subclasses set ``version`` (zero-padded, so string order is apply order)
    and ``description``, implement ``up``, and may implement ``down`` and
    ``validate``. A migration without ``down`` cannot be rolled back.
    """

    version: ClassVar[str]
    description: ClassVar[str]

    @abstractmethod
    def up(self, conn: sqlite3.Connection) -> None: ...

    def down(self, conn: sqlite3.Connection) -> None:
        raise MigrationError(f"Migration {self.version} has no rollback")

    def validate(self, conn: sqlite3.Connection) -> bool:
        return True

    def can_rollback(self) -> bool:
        return type(self).down is not Migration.down

    def __str__(self) -> str:
        return f"{self.version} ({self.description})"

    # Helpers for up/down/validate

    def run_sql(self, conn: sqlite3.Connection, *statements: str) -> None:
        for statement in statements:
            try:
                conn.execute(statement)
            except sqlite3.Error as e:
                logger.error(
                    "Migration statement failed", version=self.version, sql=statement, error=str(e)
                )
                raise MigrationError(f"Migration {self.version}: {e}") from e

    @staticmethod
    def schema_names(conn: sqlite3.Connection, kind: str) -> set[str]:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = ?", (kind,)).fetchall()
        return {row[0] for row in rows}

    def has_table(
        self, conn: sqlite3.Connection, table: str, columns: Iterable[str] = ()
    ) -> bool:
        if table not in self.schema_names(conn, "table"):
            return False
        present = {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
        return set(columns) <= present

    def has_indexes(self, conn: sqlite3.Connection, *names: str) -> bool:
        return set(names) <= self.schema_names(conn, "index")
