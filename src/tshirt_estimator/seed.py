"""Demo users and finalized tasks for a fresh database."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import structlog

from .interfaces import DatabaseInterface
from .models import NewTask, SimilarTask, TShirtSize, Vote, points_for

logger = structlog.get_logger(__name__)

DEMO_USERS = [
    ("jsmith", "password123", "John Smith"),
    ("agarcia", "password123", "Ana Garcia"),
    ("mwilson", "password123", "Mike Wilson"),
]


def _similar(task_id: int, title: str, size: TShirtSize) -> SimilarTask:
    return SimilarTask(id=task_id, title=title, size=size, points=points_for(size))


def _votes(*sizes: TShirtSize) -> list[Vote]:
    names = [display_name for _, _, display_name in DEMO_USERS]
    return [
        Vote(user_id=str(index), user_name=name, size=size)
        for index, (name, size) in enumerate(zip(names, sizes, strict=True), start=1)
    ]


def demo_tasks(now: datetime | None = None) -> list[NewTask]:
    """Four finalized tasks with team votes, created between two days and two weeks ago."""
    now = now or datetime.now(UTC)
    S, M, L, XL = TShirtSize.S, TShirtSize.M, TShirtSize.L, TShirtSize.XL

    samples = [
        (
            "Implement OAuth integration",
            "Add support for Google, GitHub and Microsoft accounts",
            L,
            2,
            85,
            [
                _similar(101, "Add SSO for enterprise clients", L),
                _similar(102, "Implement secure JWT auth", M),
            ],
            _votes(L, L, XL),
        ),
        (
            "Create responsive dashboard",
            "Build UI components for the analytics dashboard with responsive design",
            L,
            5,
            80,
            [
                _similar(103, "Implement data visualization charts", M),
                _similar(104, "Create responsive admin panel", L),
            ],
            _votes(L, XL, L),
        ),
        (
            "Fix pagination bug",
            "Resolve issue with pagination in the user list view",
            S,
            7,
            92,
            [
                _similar(105, "Fix sorting in table component", S),
                _similar(106, "Implement search functionality", M),
            ],
            _votes(S, S, M),
        ),
        (
            "Set up CI/CD pipeline",
            "Configure GitHub Actions for automated testing and deployment",
            M,
            14,
            75,
            [
                _similar(107, "Set up testing framework", M),
                _similar(108, "Create Docker deployment", L),
            ],
            _votes(M, S, M),
        ),
    ]

    return [
        NewTask(
            title=title,
            description=description,
            size=size,
            points=points_for(size),
            confidence=confidence,
            similar_tasks=similar,
            is_finalized=True,
            votes=votes,
            average_size=size,
            average_points=points_for(size),
            created_at=now - timedelta(days=days_ago),
        )
        for title, description, size, days_ago, confidence, similar, votes in samples
    ]


def seed_demo_data(database: DatabaseInterface) -> tuple[int, int]:
    """Insert demo users and tasks into empty tables.

    Returns:
        Tuple of (users_created, tasks_created)
    """
    users_created = 0
    if not database.get_users():
        for username, password, display_name in DEMO_USERS:
            database.create_user(username, password, display_name)
        users_created = len(DEMO_USERS)

    tasks_created = 0
    if not database.get_all_tasks():
        tasks_created = len(database.create_tasks(demo_tasks()))

    logger.info("Demo data seeded", users_created=users_created, tasks_created=tasks_created)
    return users_created, tasks_created
