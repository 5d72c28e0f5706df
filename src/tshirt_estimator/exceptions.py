"""Custom exceptions for the T-shirt Estimator."""

from __future__ import annotations

from typing import Any


class EstimatorError(Exception):
    """Base exception for all estimator errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(EstimatorError):
    """Raised when there's a configuration issue."""


class ValidationError(EstimatorError):
    """Raised when input validation fails."""


class NotFoundError(EstimatorError):
    """Raised when a task or session does not exist."""


class AuthenticationError(EstimatorError):
    """Raised when login credentials are rejected."""


class JiraAPIError(EstimatorError):
    """Raised when Jira API operations fail."""


class DatabaseError(EstimatorError):
    """Raised when database operations fail."""
