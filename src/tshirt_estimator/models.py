"""Data models for the T-shirt Estimator."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class TShirtSize(str, Enum):
    """Ordered complexity scale. Declaration order is significant for tie-breaks."""

    XS = "XS"
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"


POINTS_MAPPING: dict[TShirtSize, int] = {
    TShirtSize.XS: 1,
    TShirtSize.S: 2,
    TShirtSize.M: 3,
    TShirtSize.L: 5,
    TShirtSize.XL: 8,
    TShirtSize.XXL: 13,
}


def points_for(size: TShirtSize | str) -> int:
    """Return the fixed point value for a size."""
    return POINTS_MAPPING[TShirtSize(size)]


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SimilarTask(CamelModel):
    """Lightweight reference to a previously estimated task."""

    id: int = Field(..., description="Task ID")
    title: str = Field(..., description="Task title")
    size: TShirtSize = Field(..., description="Task size")
    points: int = Field(..., description="Task points")


class Vote(CamelModel):
    """A single participant's size vote on a task."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True
    )

    user_id: str = Field(..., min_length=1, description="Voter identity")
    user_name: str = Field(..., description="Voter display name")
    size: TShirtSize = Field(..., description="Voted size")


class NewTask(CamelModel):
    """A task that has been estimated but not yet stored."""

    title: str = Field(..., description="Task title")
    description: str = Field(..., description="Task description")
    size: TShirtSize = Field(..., description="Current size")
    points: int = Field(..., description="Points derived from size")
    confidence: int = Field(..., ge=0, le=100, description="Heuristic confidence percentage")
    similar_tasks: list[SimilarTask] = Field(
        default_factory=list, description="Similar tasks found when the task was created"
    )
    feedback: str | None = Field(None, description="Free-text feedback on the estimate")
    session_id: int | None = Field(None, description="Owning session, if imported")
    is_finalized: bool = Field(default=False, description="Whether the size is frozen")
    votes: list[Vote] = Field(default_factory=list, description="Votes, one per user")
    average_size: TShirtSize | None = Field(None, description="Modal size of the votes")
    average_points: int | None = Field(None, description="Points of the modal size")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation timestamp"
    )


class Task(NewTask):
    """Represents one estimable unit of work."""

    id: int = Field(..., description="Database ID")


class Session(CamelModel):
    """A named grouping of tasks for a team estimation exercise."""

    id: int = Field(..., description="Database ID")
    name: str = Field(..., description="Session name")
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Creation timestamp"
    )
    is_active: bool = Field(default=True, description="Whether the session is open")


class User(CamelModel):
    """A voting participant as stored."""

    id: int = Field(..., description="Database ID")
    username: str = Field(..., description="Unique login name")
    password: str = Field(..., description="Plaintext password")
    display_name: str | None = Field(None, description="Display name")


class UserPublic(CamelModel):
    """A voting participant as exposed to clients."""

    id: int
    username: str
    display_name: str | None = None


class Estimate(CamelModel):
    """Output of the size heuristic."""

    size: TShirtSize
    points: int
    confidence: int


class TaskDraft(CamelModel):
    """A validated title/description pair awaiting estimation."""

    title: str = Field(..., min_length=1, description="Task title")
    description: str = Field(..., min_length=1, description="Task description")


class Prediction(CamelModel):
    """Prediction returned to the client before a task is saved."""

    title: str
    description: str
    size: TShirtSize
    points: int
    confidence: int
    similar_tasks: list[SimilarTask] = Field(default_factory=list)


class TaskCreate(CamelModel):
    """Accepted prediction submitted for persistence."""

    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    size: TShirtSize
    points: int | None = Field(None, description="Ignored; recomputed from size")
    confidence: int = Field(..., ge=0, le=100)
    similar_tasks: list[SimilarTask] = Field(default_factory=list)


class FeedbackRequest(CamelModel):
    actual_size: TShirtSize
    predicted_size: TShirtSize | None = None


class SizeUpdateRequest(CamelModel):
    size: TShirtSize


class SessionCreate(CamelModel):
    name: str = Field(..., min_length=1, description="Session name")


class CsvImportRequest(CamelModel):
    csv_data: str = Field(..., min_length=1, description="Raw CSV with title/description columns")


class JiraProjectImportRequest(CamelModel):
    project_key: str = Field(..., min_length=1)
    max_results: int = Field(50, ge=1, le=100)


class JiraJqlImportRequest(CamelModel):
    jql: str = Field(..., min_length=1)
    max_results: int = Field(50, ge=1, le=100)


class VoteRequest(Vote):
    """Vote submitted over HTTP; identical in shape to a stored vote."""


class FinalizeRequest(CamelModel):
    final_size: TShirtSize


class LoginRequest(CamelModel):
    username: str
    password: str


class JiraProject(CamelModel):
    key: str
    name: str


class TaskStats(CamelModel):
    """Aggregates over finalized tasks."""

    total_tasks: int
    average_points: float
    size_distribution: dict[str, int]
    prediction_accuracy: int
