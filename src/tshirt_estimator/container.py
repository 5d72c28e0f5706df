"""Dependency injection container for the T-shirt Estimator."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from .broadcast import ConnectionManager
from .config import Config
from .database import DatabaseManager
from .estimator import SizeEstimator
from .interfaces import (
    BroadcasterInterface,
    DatabaseInterface,
    JiraAPIInterface,
    ParserInterface,
)
from .jira_api import JiraAPI
from .parser import InputParser
from .seed import seed_demo_data
from .services import AuthService, EstimationService, SessionCoordinator
from .similarity import SimilarityRanker


class Container:
    """Simple dependency injection container.

    Instances are created once on first use, under a re-entrant lock since
    route handlers run in a thread pool.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self._instances: dict[type, object] = {}
        self._lock = threading.RLock()

    def _instance(self, key: type, factory: Callable[[], object]) -> Any:
        with self._lock:
            if key not in self._instances:
                self._instances[key] = factory()
            return self._instances[key]

    def _build_database(self) -> DatabaseManager:
        database = DatabaseManager(self.config.database_path, auto_migrate=True)
        if self.config.seed_demo_data:
            seed_demo_data(database)
        return database

    def get_database(self) -> DatabaseInterface:
        return self._instance(DatabaseInterface, self._build_database)

    def get_estimator(self) -> SizeEstimator:
        return self._instance(SizeEstimator, SizeEstimator)

    def get_ranker(self) -> SimilarityRanker:
        return self._instance(
            SimilarityRanker, lambda: SimilarityRanker(limit=self.config.similar_tasks_limit)
        )

    def get_parser(self) -> ParserInterface:
        return self._instance(ParserInterface, InputParser)

    def get_jira_api(self) -> JiraAPIInterface:
        return self._instance(
            JiraAPIInterface,
            lambda: JiraAPI(
                base_url=self.config.jira_base_url,
                email=self.config.jira_email,
                api_token=self.config.jira_api_token,
                timeout=self.config.jira_timeout,
            ),
        )

    def get_broadcaster(self) -> ConnectionManager:
        return self._instance(BroadcasterInterface, ConnectionManager)

    def get_estimation_service(self) -> EstimationService:
        return self._instance(
            EstimationService,
            lambda: EstimationService(
                config=self.config,
                database=self.get_database(),
                estimator=self.get_estimator(),
                ranker=self.get_ranker(),
            ),
        )

    def get_session_coordinator(self) -> SessionCoordinator:
        return self._instance(
            SessionCoordinator,
            lambda: SessionCoordinator(
                database=self.get_database(),
                estimation_service=self.get_estimation_service(),
                parser=self.get_parser(),
                jira_api=self.get_jira_api(),
                broadcaster=self.get_broadcaster(),
            ),
        )

    def get_auth_service(self) -> AuthService:
        return self._instance(AuthService, lambda: AuthService(database=self.get_database()))

    def clear_cache(self) -> None:
        """Clear the instance cache for testing."""
        with self._lock:
            self._instances.clear()
