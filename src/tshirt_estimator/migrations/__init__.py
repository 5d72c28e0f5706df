"""Database migration system for the T-shirt Estimator."""

from .base import Migration, MigrationError
from .runner import MigrationRunner

__all__ = ["Migration", "MigrationError", "MigrationRunner"]
