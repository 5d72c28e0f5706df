"""Applies, rolls back and reports on registered migrations."""

from __future__ import annotations

import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import structlog

from .base import Migration, MigrationError

logger = structlog.get_logger(__name__)

_HISTORY_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version TEXT PRIMARY KEY,
        description TEXT NOT NULL,
        applied_at TEXT NOT NULL,
        execution_time_ms INTEGER
    )
"""


class MigrationRunner:
    """Tracks applied versions in ``schema_migrations`` and applies the rest in order."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._migrations: dict[str, Migration] = {}
        with self._connect() as conn:
            conn.execute(_HISTORY_TABLE_SQL)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and rolls back on error."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def register_migrations(self, migration_classes: list[type[Migration]]) -> None:
        for migration_class in migration_classes:
            migration = migration_class()
            if migration.version in self._migrations:
                raise MigrationError(f"Migration {migration.version} is already registered")
            self._migrations[migration.version] = migration

    def _history(self) -> dict[str, dict[str, Any]]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM schema_migrations").fetchall()
        return {row["version"]: dict(row) for row in rows}

    def get_applied_migrations(self) -> set[str]:
        return set(self._history())

    def get_pending_migrations(self) -> list[Migration]:
        applied = self.get_applied_migrations()
        return [self._migrations[v] for v in sorted(self._migrations) if v not in applied]

    def run_migrations(self, target_version: str | None = None, dry_run: bool = False) -> list[str]:
        """Apply pending migrations in version order.

        Args:
            target_version: Stop after this version (inclusive)
            dry_run: Report what would run without touching the schema

        Returns:
            Versions applied, or that would be applied on a dry run

        Raises:
            MigrationError: If a migration fails or does not validate; earlier
                migrations in the same run stay applied
        """
        pending = [
            migration
            for migration in self.get_pending_migrations()
            if target_version is None or migration.version <= target_version
        ]
        versions = [migration.version for migration in pending]

        if dry_run or not pending:
            logger.info("Pending migrations", versions=versions, dry_run=dry_run)
            return versions

        for migration in pending:
            self._apply(migration)
        logger.info("Migrations completed", versions=versions)
        return versions

    def _apply(self, migration: Migration) -> None:
        started = time.perf_counter()
        try:
            with self._connect() as conn:
                migration.up(conn)
                if not migration.validate(conn):
                    raise MigrationError(f"Migration {migration.version} validation failed")
                elapsed_ms = round((time.perf_counter() - started) * 1000)
                conn.execute(
                    "INSERT INTO schema_migrations VALUES (?, ?, ?, ?)",
                    (
                        migration.version,
                        migration.description,
                        datetime.now(UTC).isoformat(),
                        elapsed_ms,
                    ),
                )
        except MigrationError:
            logger.error("Migration failed", version=migration.version)
            raise
        except sqlite3.Error as e:
            logger.error("Migration failed", version=migration.version, error=str(e))
            raise MigrationError(f"Migration {migration.version} failed: {e}") from e

        logger.info("Migration applied", version=migration.version, execution_time_ms=elapsed_ms)

    def rollback_migration(self, version: str) -> None:
        """Undo one applied migration and remove it from the history.

        Raises:
            MigrationError: If the version is unknown, not applied, or has no rollback
        """
        migration = self._migrations.get(version)
        if migration is None:
            raise MigrationError(f"Migration {version} is not registered")
        if not migration.can_rollback():
            raise MigrationError(f"Migration {version} does not support rollback")
        if version not in self.get_applied_migrations():
            raise MigrationError(f"Migration {version} is not applied")

        with self._connect() as conn:
            migration.down(conn)
            conn.execute("DELETE FROM schema_migrations WHERE version = ?", (version,))
        logger.info("Migration rolled back", version=version)

    def get_migration_status(self) -> dict[str, dict[str, Any]]:
        history = self._history()
        return {
            version: {
                "status": "applied" if version in history else "pending",
                "description": migration.description,
                "applied_at": history.get(version, {}).get("applied_at"),
                "execution_time_ms": history.get(version, {}).get("execution_time_ms"),
                "can_rollback": migration.can_rollback(),
            }
            for version, migration in sorted(self._migrations.items())
        }

    def validate_migrations(self) -> bool:
        """Re-run ``validate`` for every applied migration that is still registered."""
        applied = self.get_applied_migrations()
        with self._connect() as conn:
            failed = [
                version
                for version, migration in sorted(self._migrations.items())
                if version in applied and not migration.validate(conn)
            ]
        if failed:
            logger.error("Migration validation failed", versions=failed)
        return not failed
