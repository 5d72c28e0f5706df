"""Service layer for estimation, collaborative sessions and login."""

from __future__ import annotations

import hmac
import math

import structlog

from .config import Config
from .estimator import SizeEstimator
from .exceptions import AuthenticationError, NotFoundError, ValidationError
from .interfaces import (
    BroadcasterInterface,
    DatabaseInterface,
    JiraAPIInterface,
    ParserInterface,
)
from .models import (
    NewTask,
    Prediction,
    Session,
    Task,
    TaskCreate,
    TaskDraft,
    TaskStats,
    TShirtSize,
    UserPublic,
    Vote,
    points_for,
)
from .similarity import SimilarityRanker
from .tally import VoteTally

logger = structlog.get_logger(__name__)


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


class EstimationService:
    """Service for predicting, storing and reporting on standalone tasks."""

    def __init__(
        self,
        config: Config,
        database: DatabaseInterface,
        estimator: SizeEstimator,
        ranker: SimilarityRanker,
    ) -> None:
        self.config = config
        self.database = database
        self.estimator = estimator
        self.ranker = ranker

    def _require_task(self, task: Task | None, task_id: int) -> Task:
        if task is None:
            raise NotFoundError("Task not found", details={"task_id": str(task_id)})
        return task

    def predict(self, title: str, description: str) -> Prediction:
        """Estimate a task and find similar stored tasks without saving anything."""
        estimate = self.estimator.estimate(title, description)
        similar_tasks = self.ranker.rank(title, description, self.database.get_all_tasks())

        logger.info(
            "Task size predicted",
            size=estimate.size.value,
            confidence=estimate.confidence,
            similar_count=len(similar_tasks),
        )
        return Prediction(
            title=title,
            description=description,
            size=estimate.size,
            points=estimate.points,
            confidence=estimate.confidence,
            similar_tasks=similar_tasks,
        )

    def build_tasks(self, drafts: list[TaskDraft], session_id: int | None = None) -> list[NewTask]:
        """Estimate drafts into unsaved tasks.

        Every draft is compared against the same snapshot of stored tasks, so
        drafts in one batch are never similar to each other.

        Args:
            drafts: Validated title/description pairs
            session_id: Session the tasks will belong to, if any

        Returns:
            Unsaved tasks in draft order
        """
        candidates = self.database.get_all_tasks()
        new_tasks: list[NewTask] = []
        for draft in drafts:
            estimate = self.estimator.estimate(draft.title, draft.description)
            new_tasks.append(
                NewTask(
                    title=draft.title,
                    description=draft.description,
                    size=estimate.size,
                    points=estimate.points,
                    confidence=estimate.confidence,
                    similar_tasks=self.ranker.rank(draft.title, draft.description, candidates),
                    session_id=session_id,
                    is_finalized=False,
                )
            )
        return new_tasks

    def create_task(self, request: TaskCreate) -> Task:
        """Persist an accepted prediction; points always follow the size."""
        return self.database.create_task(
            NewTask(
                title=request.title,
                description=request.description,
                size=request.size,
                points=points_for(request.size),
                confidence=request.confidence,
                similar_tasks=request.similar_tasks,
            )
        )

    def get_recent_tasks(self, limit: int | None = None) -> list[Task]:
        return self.database.get_recent_tasks(limit or self.config.recent_tasks_limit)

    def get_stats(self) -> TaskStats:
        """Summarize finalized tasks.

        Prediction accuracy is the share of finalized tasks with feedback whose
        final size matches the team's modal vote. With no such tasks the
        configured default is reported.
        """
        finalized = self.database.get_finalized_tasks()
        total = len(finalized)

        average_points = (
            _round_half_up(sum(task.points for task in finalized) / total, 1) if total else 0
        )

        distribution = {size.value: 0 for size in TShirtSize}
        for task in finalized:
            distribution[task.size.value] += 1
        if total:
            distribution = {
                size: int(_round_half_up(count / total * 100))
                for size, count in distribution.items()
            }

        with_feedback = [task for task in finalized if task.feedback]
        if with_feedback:
            correct = sum(1 for task in with_feedback if task.size == task.average_size)
            accuracy = int(_round_half_up(correct / len(with_feedback) * 100))
        else:
            accuracy = self.config.default_prediction_accuracy

        return TaskStats(
            total_tasks=total,
            average_points=average_points,
            size_distribution=distribution,
            prediction_accuracy=accuracy,
        )

    def record_feedback(
        self, task_id: int, actual_size: TShirtSize, predicted_size: TShirtSize | None = None
    ) -> Task:
        """Store "Predicted: X, Actual: Y" feedback, replacing any earlier feedback.

        Args:
            task_id: Task to annotate
            actual_size: Size the work turned out to be
            predicted_size: Size that was predicted; defaults to the task's current size

        Raises:
            NotFoundError: If the task does not exist
        """
        if predicted_size is None:
            predicted_size = self._require_task(self.database.get_task(task_id), task_id).size

        feedback = f"Predicted: {predicted_size.value}, Actual: {actual_size.value}"
        task = self._require_task(self.database.update_task_feedback(task_id, feedback), task_id)
        logger.info("Task feedback recorded", task_id=task_id, feedback=feedback)
        return task

    def update_task_size(self, task_id: int, size: TShirtSize) -> Task:
        """Override a task's size; votes and finalization state are untouched."""
        task = self._require_task(self.database.update_task_size(task_id, size), task_id)
        logger.info("Task size updated", task_id=task_id, size=size.value)
        return task


class SessionCoordinator:
    """Service for collaborative estimation sessions: import, vote, finalize."""

    def __init__(
        self,
        database: DatabaseInterface,
        estimation_service: EstimationService,
        parser: ParserInterface,
        jira_api: JiraAPIInterface,
        broadcaster: BroadcasterInterface,
        tally: VoteTally | None = None,
    ) -> None:
        self.database = database
        self.estimation_service = estimation_service
        self.parser = parser
        self.jira_api = jira_api
        self.broadcaster = broadcaster
        self.tally = tally or VoteTally()

    def _load_task(self, task_id: int) -> Task:
        task = self.database.get_task(task_id)
        if task is None:
            raise NotFoundError("Task not found", details={"task_id": str(task_id)})
        return task

    def create_session(self, name: str) -> Session:
        """Create an active session.

        Raises:
            ValidationError: If the name is empty or only whitespace
        """
        name = name.strip()
        if not name:
            raise ValidationError("Session name is required", details={"name": "required"})
        return self.database.create_session(name)

    def get_active_sessions(self) -> list[Session]:
        return self.database.get_active_sessions()

    def get_session(self, session_id: int) -> Session:
        session = self.database.get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found", details={"session_id": str(session_id)})
        return session

    def close_session(self, session_id: int) -> Session:
        """Mark a session inactive. Its tasks are left as they are."""
        session = self.database.close_session(session_id)
        if session is None:
            raise NotFoundError("Session not found", details={"session_id": str(session_id)})
        return session

    def get_session_tasks(self, session_id: int) -> list[Task]:
        self.get_session(session_id)
        return self.database.get_session_tasks(session_id)

    def import_tasks(self, session_id: int, drafts: list[TaskDraft]) -> list[Task]:
        """Estimate drafts and store them under a session in one bulk insert.

        Args:
            session_id: Target session
            drafts: Title/description pairs from an importer

        Returns:
            Created tasks in draft order, all unfinalized

        Raises:
            NotFoundError: If the session does not exist
        """
        self.get_session(session_id)

        tasks = self.database.create_tasks(
            self.estimation_service.build_tasks(drafts, session_id=session_id)
        )

        logger.info("Tasks imported", session_id=session_id, task_count=len(tasks))
        self.broadcaster.publish(
            {
                "type": "update",
                "data": {
                    "event": "import",
                    "sessionId": session_id,
                    "taskIds": [task.id for task in tasks],
                },
            }
        )
        return tasks

    def import_csv(self, session_id: int, csv_data: str) -> list[Task]:
        self.get_session(session_id)
        return self.import_tasks(session_id, self.parser.parse_csv(csv_data))

    def import_jira_project(
        self, session_id: int, project_key: str, max_results: int = 50
    ) -> list[Task]:
        self.get_session(session_id)
        drafts = self.jira_api.fetch_issues_from_project(project_key, max_results)
        return self.import_tasks(session_id, drafts)

    def import_jira_jql(self, session_id: int, jql: str, max_results: int = 50) -> list[Task]:
        self.get_session(session_id)
        return self.import_tasks(session_id, self.jira_api.fetch_issues_from_jql(jql, max_results))

    def vote(self, task_id: int, user_id: str, user_name: str, size: TShirtSize) -> Task:
        """Record a user's vote and recompute the task's modal size.

        Voting on a finalized task is allowed; it updates the vote history and
        consensus but never the frozen size, points or finalization flag.

        Raises:
            NotFoundError: If the task does not exist
        """
        task = self._load_task(task_id)
        tallied = self.tally.apply_vote(
            task, Vote(user_id=user_id, user_name=user_name, size=size)
        )

        updated = self.database.update_task_votes(
            task_id, tallied.votes, tallied.average_size, tallied.average_points
        )
        if updated is None:
            raise NotFoundError("Task not found", details={"task_id": str(task_id)})

        logger.info(
            "Vote recorded",
            task_id=task_id,
            user_id=user_id,
            size=size.value,
            average_size=updated.average_size.value if updated.average_size else None,
            vote_count=len(updated.votes),
        )
        self._publish_task("vote", updated)
        return updated

    def finalize(self, task_id: int, final_size: TShirtSize) -> Task:
        """Freeze a task's size and points. Votes are kept as they are.

        Raises:
            NotFoundError: If the task does not exist
        """
        task = self.database.finalize_task(task_id, final_size)
        if task is None:
            raise NotFoundError("Task not found", details={"task_id": str(task_id)})

        self._publish_task("finalize", task)
        return task

    def _publish_task(self, event: str, task: Task) -> None:
        self.broadcaster.publish(
            {
                "type": "update",
                "data": {"event": event, "task": task.model_dump(mode="json", by_alias=True)},
            }
        )


class AuthService:
    """Username/password login against stored users.

    Passwords are stored and compared in plaintext. This is a known weakness
    kept for compatibility with existing user records; the comparison is at
    least constant-time.
    """

    def __init__(self, database: DatabaseInterface) -> None:
        self.database = database
        logger.warning("Passwords are stored and compared as plaintext")

    def login(self, username: str, password: str) -> UserPublic:
        """Return the user's public profile if the credentials match.

        Raises:
            AuthenticationError: If the user is unknown or the password differs
        """
        user = self.database.get_user_by_username(username)
        stored = user.password if user else ""
        if user is None or not hmac.compare_digest(stored.encode(), password.encode()):
            logger.warning("Login failed", username=username)
            raise AuthenticationError("Invalid username or password")

        logger.info("User logged in", user_id=user.id, username=username)
        return UserPublic(id=user.id, username=user.username, display_name=user.display_name)

    def get_team_members(self) -> list[UserPublic]:
        return [
            UserPublic(id=user.id, username=user.username, display_name=user.display_name)
            for user in self.database.get_users()
        ]
