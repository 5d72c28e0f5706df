"""Migration versions for the T-shirt Estimator."""

from .m001_initial_schema import InitialSchemaMigration
from .m002_task_indexes import TaskIndexesMigration

# All migrations in order
ALL_MIGRATIONS = [
    InitialSchemaMigration,
    TaskIndexesMigration,
]

__all__ = [
    "InitialSchemaMigration",
    "TaskIndexesMigration",
    "ALL_MIGRATIONS",
]
