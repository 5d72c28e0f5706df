"""FastAPI application exposing the estimation REST API and update WebSocket."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import Config
from .container import Container
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    EstimatorError,
    JiraAPIError,
    NotFoundError,
    ValidationError,
)
from .models import (
    CsvImportRequest,
    FeedbackRequest,
    FinalizeRequest,
    JiraJqlImportRequest,
    JiraProject,
    JiraProjectImportRequest,
    LoginRequest,
    Prediction,
    Session,
    SessionCreate,
    SizeUpdateRequest,
    Task,
    TaskCreate,
    TaskDraft,
    TaskStats,
    VoteRequest,
)

logger = structlog.get_logger(__name__)

ERROR_STATUS_CODES: dict[type[EstimatorError], int] = {
    ValidationError: 400,
    AuthenticationError: 401,
    NotFoundError: 404,
    JiraAPIError: 502,
    ConfigurationError: 503,
}

INTERNAL_ERROR = "Internal server error"


def _status_for(error: EstimatorError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


@contextmanager
def _failure_message(message: str) -> Iterator[None]:
    """Let domain errors through; turn anything else into a generic 500."""
    try:
        yield
    except (EstimatorError, HTTPException):
        raise
    except Exception as e:
        logger.error(message, error=str(e), exc_info=True)
        raise HTTPException(status_code=500, detail=message) from e


def _get_container(app: FastAPI) -> Container:
    if app.state.container is None:
        app.state.container = Container(Config())
        logger.info("Container created for FastAPI")
    return app.state.container


def get_container(request: Request) -> Container:
    return _get_container(request.app)


def create_app(container: Container | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        container: Pre-built container; when omitted one is created from the
            environment on first use
    """
    app = FastAPI(
        title="T-shirt Estimator",
        description="Task size estimation and collaborative voting API",
        version=__version__,
    )
    app.state.container = container

    @app.exception_handler(EstimatorError)
    async def estimator_error_handler(_request: Request, exc: EstimatorError) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code == 500:
            logger.error("Unhandled estimator error", error=exc.message, details=exc.details)
            return JSONResponse(status_code=status_code, content={"message": INTERNAL_ERROR})
        content: dict[str, Any] = {"message": exc.message}
        if exc.details:
            content["details"] = exc.details
        return JSONResponse(status_code=status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        # sizes are the only enum fields on the wire
        message = (
            "Invalid size" if any(e.get("type") == "enum" for e in errors) else "Invalid request"
        )
        return JSONResponse(
            status_code=400,
            content={"message": message, "details": jsonable_encoder(errors)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        _request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy", "service": "tshirt-estimator"}

    # Standalone estimation

    @app.post("/api/tasks/predict", response_model=Prediction)
    def predict_task(
        draft: TaskDraft, container: Container = Depends(get_container)
    ) -> Prediction:
        with _failure_message("Failed to predict task size"):
            return container.get_estimation_service().predict(draft.title, draft.description)

    @app.post("/api/tasks", response_model=Task, status_code=201)
    def create_task(
        request: TaskCreate, container: Container = Depends(get_container)
    ) -> Task:
        with _failure_message("Failed to save task"):
            return container.get_estimation_service().create_task(request)

    @app.get("/api/tasks/recent", response_model=list[Task])
    def recent_tasks(container: Container = Depends(get_container)) -> list[Task]:
        with _failure_message("Failed to get recent tasks"):
            return container.get_estimation_service().get_recent_tasks()

    @app.get("/api/stats", response_model=TaskStats)
    def task_stats(container: Container = Depends(get_container)) -> TaskStats:
        with _failure_message("Failed to get stats"):
            return container.get_estimation_service().get_stats()

    @app.post("/api/tasks/{task_id}/feedback", response_model=Task)
    def task_feedback(
        task_id: int, request: FeedbackRequest, container: Container = Depends(get_container)
    ) -> Task:
        with _failure_message("Failed to update task feedback"):
            return container.get_estimation_service().record_feedback(
                task_id, request.actual_size, request.predicted_size
            )

    @app.put("/api/tasks/{task_id}/size", response_model=Task)
    def update_task_size(
        task_id: int, request: SizeUpdateRequest, container: Container = Depends(get_container)
    ) -> Task:
        with _failure_message("Failed to update task size"):
            return container.get_estimation_service().update_task_size(task_id, request.size)

    # Collaborative sessions

    @app.post("/api/sessions", response_model=Session, status_code=201)
    def create_session(
        request: SessionCreate, container: Container = Depends(get_container)
    ) -> Session:
        with _failure_message("Failed to create session"):
            return container.get_session_coordinator().create_session(request.name)

    @app.get("/api/sessions", response_model=list[Session])
    def active_sessions(container: Container = Depends(get_container)) -> list[Session]:
        with _failure_message("Failed to get sessions"):
            return container.get_session_coordinator().get_active_sessions()

    @app.post("/api/sessions/{session_id}/close", response_model=Session)
    def close_session(
        session_id: int, container: Container = Depends(get_container)
    ) -> Session:
        with _failure_message("Failed to close session"):
            return container.get_session_coordinator().close_session(session_id)

    @app.get("/api/sessions/{session_id}/tasks", response_model=list[Task])
    def session_tasks(
        session_id: int, container: Container = Depends(get_container)
    ) -> list[Task]:
        with _failure_message("Failed to get session tasks"):
            return container.get_session_coordinator().get_session_tasks(session_id)

    @app.post("/api/sessions/{session_id}/import", response_model=list[Task], status_code=201)
    def import_csv(
        session_id: int, request: CsvImportRequest, container: Container = Depends(get_container)
    ) -> list[Task]:
        with _failure_message("Failed to import tasks"):
            return container.get_session_coordinator().import_csv(session_id, request.csv_data)

    @app.post(
        "/api/sessions/{session_id}/import/jira", response_model=list[Task], status_code=201
    )
    def import_jira_project(
        session_id: int,
        request: JiraProjectImportRequest,
        container: Container = Depends(get_container),
    ) -> list[Task]:
        with _failure_message("Failed to import tasks from Jira"):
            return container.get_session_coordinator().import_jira_project(
                session_id, request.project_key, request.max_results
            )

    @app.post(
        "/api/sessions/{session_id}/import/jira/jql", response_model=list[Task], status_code=201
    )
    def import_jira_jql(
        session_id: int,
        request: JiraJqlImportRequest,
        container: Container = Depends(get_container),
    ) -> list[Task]:
        with _failure_message("Failed to import tasks using JQL"):
            return container.get_session_coordinator().import_jira_jql(
                session_id, request.jql, request.max_results
            )

    @app.get("/api/jira/projects", response_model=list[JiraProject])
    def jira_projects(container: Container = Depends(get_container)) -> list[JiraProject]:
        with _failure_message("Failed to fetch Jira projects"):
            return container.get_jira_api().get_projects()

    @app.post("/api/tasks/{task_id}/vote", response_model=Task)
    def vote_on_task(
        task_id: int, request: VoteRequest, container: Container = Depends(get_container)
    ) -> Task:
        with _failure_message("Failed to vote on task"):
            return container.get_session_coordinator().vote(
                task_id, request.user_id, request.user_name, request.size
            )

    @app.post("/api/tasks/{task_id}/finalize", response_model=Task)
    def finalize_task(
        task_id: int, request: FinalizeRequest, container: Container = Depends(get_container)
    ) -> Task:
        with _failure_message("Failed to finalize task"):
            return container.get_session_coordinator().finalize(task_id, request.final_size)

    # Team

    @app.post("/api/login")
    def login(
        request: LoginRequest, container: Container = Depends(get_container)
    ) -> dict[str, Any]:
        with _failure_message("Login failed"):
            user = container.get_auth_service().login(request.username, request.password)
        return {"user": user.model_dump(mode="json", by_alias=True)}

    @app.get("/api/team-members")
    def team_members(container: Container = Depends(get_container)) -> dict[str, Any]:
        with _failure_message("Failed to get team members"):
            users = container.get_auth_service().get_team_members()
        return {"users": [user.model_dump(mode="json", by_alias=True) for user in users]}

    # Real-time updates

    @app.websocket("/ws")
    async def updates_socket(websocket: WebSocket) -> None:
        """Rebroadcast every JSON message from any client to all clients."""
        manager = _get_container(websocket.app).get_broadcaster()
        await manager.connect(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    logger.warning("Ignoring binary WebSocket message")
                    continue
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError as e:
                    logger.error("Error parsing WebSocket message", error=str(e))
                    continue
                logger.debug("Received WebSocket message", data=data)
                await manager.broadcast({"type": "update", "data": data})
        finally:
            manager.disconnect(websocket)

    return app


app = create_app()

