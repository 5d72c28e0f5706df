"""Pytest configuration and fixtures."""

from __future__ import annotations

import random
import tempfile
from collections.abc import Callable, Generator
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from tshirt_estimator.config import Config
from tshirt_estimator.container import Container
from tshirt_estimator.database import DatabaseManager
from tshirt_estimator.estimator import SizeEstimator
from tshirt_estimator.fastapi_app import create_app
from tshirt_estimator.models import NewTask, TShirtSize, points_for
from tshirt_estimator.parser import InputParser
from tshirt_estimator.services import EstimationService, SessionCoordinator
from tshirt_estimator.similarity import SimilarityRanker


@pytest.fixture
def temp_db() -> Generator[Path, None, None]:
    """Create a temporary database file for testing."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as tmp:
        db_path = Path(tmp.name)

    yield db_path

    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def test_config(temp_db: Path) -> Config:
    """Create a test configuration."""
    return Config(
        database_path=temp_db,
        jira_base_url="",
        jira_email="",
        jira_api_token="",
        seed_demo_data=False,
    )


@pytest.fixture
def db_manager(temp_db: Path) -> DatabaseManager:
    """Create a database manager with temporary database."""
    return DatabaseManager(temp_db)


@pytest.fixture
def estimation_service(test_config: Config, db_manager: DatabaseManager) -> EstimationService:
    """Create an estimation service with a seeded random source."""
    return EstimationService(
        config=test_config,
        database=db_manager,
        estimator=SizeEstimator(rng=random.Random(42)),
        ranker=SimilarityRanker(limit=test_config.similar_tasks_limit),
    )


@pytest.fixture
def mock_jira_api() -> MagicMock:
    """Create a mock Jira client."""
    return MagicMock()


@pytest.fixture
def mock_broadcaster() -> MagicMock:
    """Create a mock update broadcaster."""
    return MagicMock()


@pytest.fixture
def coordinator(
    db_manager: DatabaseManager,
    estimation_service: EstimationService,
    mock_jira_api: MagicMock,
    mock_broadcaster: MagicMock,
) -> SessionCoordinator:
    """Create a session coordinator backed by a real database."""
    return SessionCoordinator(
        database=db_manager,
        estimation_service=estimation_service,
        parser=InputParser(),
        jira_api=mock_jira_api,
        broadcaster=mock_broadcaster,
    )


@pytest.fixture
def container(test_config: Config) -> Container:
    """Create a dependency container for the test configuration."""
    return Container(test_config)


@pytest.fixture
def client(container: Container) -> TestClient:
    """Create a test client for the FastAPI app."""
    return TestClient(create_app(container))


def _build_task(
    title: str = "Fix login button",
    description: str = "Button does nothing on click",
    size: TShirtSize = TShirtSize.S,
    **overrides: object,
) -> NewTask:
    """Build an unsaved task with sensible defaults."""
    fields: dict[str, object] = {
        "title": title,
        "description": description,
        "size": size,
        "points": points_for(size),
        "confidence": 80,
    }
    fields.update(overrides)
    return NewTask(**fields)


@pytest.fixture
def make_task() -> Callable[..., NewTask]:
    """Factory for unsaved tasks."""
    return _build_task
