"""Tests for service layer components."""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from tshirt_estimator.database import DatabaseManager
from tshirt_estimator.exceptions import (
    AuthenticationError,
    JiraAPIError,
    NotFoundError,
    ValidationError,
)
from tshirt_estimator.models import NewTask, TaskCreate, TaskDraft, TShirtSize, Vote
from tshirt_estimator.services import AuthService, EstimationService, SessionCoordinator


class TestEstimationService:
    """Test standalone estimation."""

    def test_predict_does_not_persist(
        self, estimation_service: EstimationService, db_manager: DatabaseManager
    ):
        prediction = estimation_service.predict("Fix typo", "change one word")

        assert prediction.size == TShirtSize.XS
        assert prediction.points == 1
        assert prediction.similar_tasks == []
        assert db_manager.get_all_tasks() == []

    def test_predict_finds_similar_tasks(
        self,
        estimation_service: EstimationService,
        db_manager: DatabaseManager,
        make_task: Callable[..., NewTask],
    ):
        stored = db_manager.create_task(make_task("Fix pagination bug", "user list view"))

        prediction = estimation_service.predict("Fix pagination", "in the admin view")

        assert [similar.id for similar in prediction.similar_tasks] == [stored.id]

    def test_create_task_recomputes_points(self, estimation_service: EstimationService):
        task = estimation_service.create_task(
            TaskCreate(
                title="Add filter", description="Filter by date", size="L", points=1, confidence=88
            )
        )

        assert task.id > 0
        assert task.size == TShirtSize.L
        assert task.points == 5
        assert task.is_finalized is False

    def test_build_tasks_use_one_snapshot(
        self, estimation_service: EstimationService, db_manager: DatabaseManager
    ):
        drafts = [
            TaskDraft(title="Export users report", description="as csv"),
            TaskDraft(title="Export users report", description="as pdf"),
        ]

        first = db_manager.create_tasks(estimation_service.build_tasks(drafts))

        assert all(task.similar_tasks == [] for task in first)

    def test_recent_tasks_limit(
        self,
        estimation_service: EstimationService,
        db_manager: DatabaseManager,
        make_task: Callable[..., NewTask],
    ):
        for i in range(12):
            db_manager.create_task(make_task(title=f"Task {i}", is_finalized=True))

        assert len(estimation_service.get_recent_tasks()) == 10
        assert len(estimation_service.get_recent_tasks(limit=3)) == 3

    def test_stats_empty(self, estimation_service: EstimationService):
        stats = estimation_service.get_stats()

        assert stats.total_tasks == 0
        assert stats.average_points == 0
        assert stats.size_distribution == {"XS": 0, "S": 0, "M": 0, "L": 0, "XL": 0, "XXL": 0}
        assert stats.prediction_accuracy == 82

    def test_stats(
        self,
        estimation_service: EstimationService,
        db_manager: DatabaseManager,
        make_task: Callable[..., NewTask],
    ):
        db_manager.create_task(make_task(size=TShirtSize.L, is_finalized=True))
        db_manager.create_task(make_task(size=TShirtSize.M, is_finalized=True))
        db_manager.create_task(make_task(size=TShirtSize.M, is_finalized=True))
        db_manager.create_task(make_task(size=TShirtSize.XXL))

        stats = estimation_service.get_stats()

        assert stats.total_tasks == 3
        assert stats.average_points == pytest.approx(3.7)
        assert stats.size_distribution["M"] == 67
        assert stats.size_distribution["L"] == 33
        assert stats.size_distribution["XXL"] == 0
        assert stats.prediction_accuracy == 82

    def test_stats_accuracy_from_feedback(
        self,
        estimation_service: EstimationService,
        db_manager: DatabaseManager,
        make_task: Callable[..., NewTask],
    ):
        matching = db_manager.create_task(
            make_task(size=TShirtSize.M, is_finalized=True, average_size=TShirtSize.M)
        )
        differing = db_manager.create_task(
            make_task(size=TShirtSize.L, is_finalized=True, average_size=TShirtSize.S)
        )
        estimation_service.record_feedback(matching.id, TShirtSize.M)
        estimation_service.record_feedback(differing.id, TShirtSize.XL)

        assert estimation_service.get_stats().prediction_accuracy == 50

    def test_record_feedback_defaults_prediction_to_current_size(
        self,
        estimation_service: EstimationService,
        db_manager: DatabaseManager,
        make_task: Callable[..., NewTask],
    ):
        task = db_manager.create_task(make_task(size=TShirtSize.S))

        updated = estimation_service.record_feedback(task.id, TShirtSize.L)
        assert updated.feedback == "Predicted: S, Actual: L"

        updated = estimation_service.record_feedback(task.id, TShirtSize.M, TShirtSize.XS)
        assert updated.feedback == "Predicted: XS, Actual: M"

    def test_record_feedback_missing_task(self, estimation_service: EstimationService):
        with pytest.raises(NotFoundError, match="Task not found"):
            estimation_service.record_feedback(404, TShirtSize.M)

    def test_update_task_size(
        self,
        estimation_service: EstimationService,
        db_manager: DatabaseManager,
        make_task: Callable[..., NewTask],
    ):
        task = db_manager.create_task(make_task())

        updated = estimation_service.update_task_size(task.id, TShirtSize.XL)

        assert updated.size == TShirtSize.XL
        assert updated.points == 8

    def test_update_task_size_missing(self, estimation_service: EstimationService):
        with pytest.raises(NotFoundError):
            estimation_service.update_task_size(404, TShirtSize.XL)


class TestSessionCoordinator:
    """Test collaborative sessions."""

    def test_create_session_strips_name(self, coordinator: SessionCoordinator):
        session = coordinator.create_session("  Sprint 12  ")

        assert session.name == "Sprint 12"
        assert session.is_active is True

    def test_create_session_blank_name(self, coordinator: SessionCoordinator):
        with pytest.raises(ValidationError, match="Session name is required"):
            coordinator.create_session("   ")

    def test_unknown_session(self, coordinator: SessionCoordinator):
        with pytest.raises(NotFoundError, match="Session not found"):
            coordinator.get_session_tasks(99)
        with pytest.raises(NotFoundError):
            coordinator.close_session(99)
        with pytest.raises(NotFoundError):
            coordinator.import_csv(99, "title,description\nOne,first\n")

    def test_close_session(self, coordinator: SessionCoordinator):
        session = coordinator.create_session("Sprint")

        closed = coordinator.close_session(session.id)

        assert closed.is_active is False
        assert coordinator.get_active_sessions() == []

    def test_import_csv(self, coordinator: SessionCoordinator, mock_broadcaster: MagicMock):
        session = coordinator.create_session("Sprint")
        csv_data = (
            "title,description\n"
            "Fix typo,change one word\n"
            "Implement OAuth,security and authentication\n"
            "Export report,download as csv\n"
        )

        tasks = coordinator.import_csv(session.id, csv_data)

        assert len(tasks) == 3
        assert all(task.session_id == session.id for task in tasks)
        assert all(task.is_finalized is False for task in tasks)
        assert [t.id for t in coordinator.get_session_tasks(session.id)] == [t.id for t in tasks]

        mock_broadcaster.publish.assert_called_once_with(
            {
                "type": "update",
                "data": {
                    "event": "import",
                    "sessionId": session.id,
                    "taskIds": [task.id for task in tasks],
                },
            }
        )

    def test_import_invalid_csv_creates_nothing(
        self, coordinator: SessionCoordinator, db_manager: DatabaseManager
    ):
        session = coordinator.create_session("Sprint")

        with pytest.raises(ValidationError):
            coordinator.import_csv(session.id, "title,description\nOne,first\n,missing\n")

        assert db_manager.get_session_tasks(session.id) == []

    def test_import_jira_project(self, coordinator: SessionCoordinator, mock_jira_api: MagicMock):
        session = coordinator.create_session("Sprint")
        mock_jira_api.fetch_issues_from_project.return_value = [
            TaskDraft(title="[WEB-1] Fix header", description="Header misaligned")
        ]

        tasks = coordinator.import_jira_project(session.id, "WEB", 20)

        assert [task.title for task in tasks] == ["[WEB-1] Fix header"]
        mock_jira_api.fetch_issues_from_project.assert_called_once_with("WEB", 20)

    def test_import_jira_jql_error_propagates(
        self, coordinator: SessionCoordinator, mock_jira_api: MagicMock, db_manager: DatabaseManager
    ):
        session = coordinator.create_session("Sprint")
        mock_jira_api.fetch_issues_from_jql.side_effect = JiraAPIError("boom")

        with pytest.raises(JiraAPIError):
            coordinator.import_jira_jql(session.id, "project = WEB")

        assert db_manager.get_session_tasks(session.id) == []

    def test_vote_and_tie_break(
        self, coordinator: SessionCoordinator, mock_broadcaster: MagicMock
    ):
        session = coordinator.create_session("Sprint")
        task = coordinator.import_csv(session.id, "title,description\nAdd filter,by date\n")[0]

        coordinator.vote(task.id, "1", "Ana", TShirtSize.M)
        updated = coordinator.vote(task.id, "2", "Ben", TShirtSize.L)

        assert updated.votes == [
            Vote(user_id="1", user_name="Ana", size=TShirtSize.M),
            Vote(user_id="2", user_name="Ben", size=TShirtSize.L),
        ]
        assert updated.average_size == TShirtSize.M
        assert updated.average_points == 3

        message = mock_broadcaster.publish.call_args.args[0]
        assert message["type"] == "update"
        assert message["data"]["event"] == "vote"
        assert message["data"]["task"]["averageSize"] == "M"

    def test_vote_missing_task(self, coordinator: SessionCoordinator):
        with pytest.raises(NotFoundError):
            coordinator.vote(404, "1", "Ana", TShirtSize.M)

    def test_finalize_then_vote_keeps_frozen_size(
        self, coordinator: SessionCoordinator, mock_broadcaster: MagicMock
    ):
        session = coordinator.create_session("Sprint")
        task = coordinator.import_csv(session.id, "title,description\nAdd filter,by date\n")[0]
        coordinator.vote(task.id, "1", "Ana", TShirtSize.M)

        finalized = coordinator.finalize(task.id, TShirtSize.XL)
        assert finalized.is_finalized is True
        assert finalized.size == TShirtSize.XL
        assert finalized.points == 8
        assert len(finalized.votes) == 1
        assert mock_broadcaster.publish.call_args.args[0]["data"]["event"] == "finalize"

        after_vote = coordinator.vote(task.id, "2", "Ben", TShirtSize.XS)
        assert after_vote.is_finalized is True
        assert after_vote.size == TShirtSize.XL
        assert after_vote.points == 8
        assert len(after_vote.votes) == 2

    def test_finalize_missing_task(self, coordinator: SessionCoordinator):
        with pytest.raises(NotFoundError):
            coordinator.finalize(404, TShirtSize.M)


class TestAuthService:
    """Test login."""

    def test_login_success(self, db_manager: DatabaseManager):
        db_manager.create_user("jsmith", "password123", "John Smith")

        user = AuthService(db_manager).login("jsmith", "password123")

        assert user.username == "jsmith"
        assert user.display_name == "John Smith"
        assert "password" not in user.model_dump()

    @pytest.mark.parametrize(("username", "password"), [("jsmith", "wrong"), ("ghost", "x")])
    def test_login_failure(self, db_manager: DatabaseManager, username: str, password: str):
        db_manager.create_user("jsmith", "password123", None)

        with pytest.raises(AuthenticationError, match="Invalid username or password"):
            AuthService(db_manager).login(username, password)

    def test_team_members(self, db_manager: DatabaseManager):
        db_manager.create_user("a", "pw", "A")
        db_manager.create_user("b", "pw", "B")

        members = AuthService(db_manager).get_team_members()

        assert [m.username for m in members] == ["a", "b"]
