"""Tests for the database migration system."""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from tshirt_estimator.migrations import Migration, MigrationError, MigrationRunner
from tshirt_estimator.migrations.versions import ALL_MIGRATIONS


class NoRollbackMigration(Migration):
    version = "900"
    description = "Test migration without rollback"

    def up(self, conn: sqlite3.Connection) -> None:
        conn.execute("CREATE TABLE IF NOT EXISTS scratch (id INTEGER PRIMARY KEY)")


class FailingValidationMigration(Migration):
    version = "901"
    description = "Test migration that never validates"

    def up(self, conn: sqlite3.Connection) -> None:
        pass

    def validate(self, conn: sqlite3.Connection) -> bool:
        return self.has_table(conn, "does_not_exist")


@pytest.fixture
def runner(temp_db: Path) -> MigrationRunner:
    migration_runner = MigrationRunner(temp_db)
    migration_runner.register_migrations(ALL_MIGRATIONS)
    return migration_runner


class TestMigrationRunner:
    """Test applying and rolling back migrations."""

    def test_all_pending_initially(self, runner: MigrationRunner):
        assert [m.version for m in runner.get_pending_migrations()] == ["001", "002"]

    def test_run_migrations(self, runner: MigrationRunner, temp_db: Path):
        assert runner.run_migrations() == ["001", "002"]
        assert runner.get_pending_migrations() == []
        assert runner.run_migrations() == []

        with sqlite3.connect(temp_db) as conn:
            indexes = {
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type='index'")
            }
        assert "idx_tasks_session_id" in indexes

    def test_target_version(self, runner: MigrationRunner):
        assert runner.run_migrations(target_version="001") == ["001"]
        assert [m.version for m in runner.get_pending_migrations()] == ["002"]

    def test_dry_run(self, runner: MigrationRunner):
        assert runner.run_migrations(dry_run=True) == ["001", "002"]
        assert runner.get_applied_migrations() == set()

    def test_status(self, runner: MigrationRunner):
        runner.run_migrations(target_version="001")

        status = runner.get_migration_status()

        assert status["001"]["status"] == "applied"
        assert status["001"]["applied_at"] is not None
        assert status["002"]["status"] == "pending"
        assert status["002"]["can_rollback"] is True

    def test_rollback(self, runner: MigrationRunner):
        runner.run_migrations()

        runner.rollback_migration("002")

        assert runner.get_applied_migrations() == {"001"}
        assert runner.validate_migrations() is True

    def test_rollback_not_applied(self, runner: MigrationRunner):
        with pytest.raises(MigrationError, match="is not applied"):
            runner.rollback_migration("002")

    def test_rollback_unsupported(self, temp_db: Path):
        migration_runner = MigrationRunner(temp_db)
        migration_runner.register_migrations([NoRollbackMigration])
        migration_runner.run_migrations()

        assert migration_runner.get_migration_status()["900"]["can_rollback"] is False
        with pytest.raises(MigrationError, match="does not support rollback"):
            migration_runner.rollback_migration("900")

    def test_duplicate_registration(self, runner: MigrationRunner):
        with pytest.raises(MigrationError, match="already registered"):
            runner.register_migrations(ALL_MIGRATIONS[:1])

    def test_failed_validation_not_recorded(self, temp_db: Path):
        migration_runner = MigrationRunner(temp_db)
        migration_runner.register_migrations([FailingValidationMigration])

        with pytest.raises(MigrationError, match="validation failed"):
            migration_runner.run_migrations()

        assert migration_runner.get_applied_migrations() == set()

    def test_validate_detects_dropped_table(self, runner: MigrationRunner, temp_db: Path):
        runner.run_migrations()
        with sqlite3.connect(temp_db) as conn:
            conn.execute("DROP TABLE users")

        assert runner.validate_migrations() is False


def test_migration_versions_are_sequential() -> None:
    """Versions are unique, zero-padded and registered in order."""
    versions = [migration().version for migration in ALL_MIGRATIONS]

    assert versions == sorted(versions)
    assert len(set(versions)) == len(versions)
    assert all(len(version) == 3 and version.isdigit() for version in versions)
