"""Configuration management for the T-shirt Estimator."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Configuration settings for the T-shirt Estimator."""

    # Server settings
    host: str = "127.0.0.1"
    port: int = 5000

    # Estimation behaviour
    recent_tasks_limit: int = 10
    similar_tasks_limit: int = 3
    default_prediction_accuracy: int = 82

    # Database settings
    database_path: Path = Field(default_factory=lambda: Path.cwd() / "data" / "estimator.db")
    seed_demo_data: bool = False

    # Jira API settings
    jira_base_url: str = ""
    jira_email: str = ""
    jira_api_token: str = ""
    jira_timeout: float = 10.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @computed_field  # type: ignore[misc]
    def jira_configured(self) -> bool:
        """Whether all Jira credentials are present."""
        return bool(self.jira_base_url and self.jira_email and self.jira_api_token)

    def __init__(self, **kwargs: Any) -> None:
        """Initialize configuration and ensure database directory exists."""
        super().__init__(**kwargs)
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
