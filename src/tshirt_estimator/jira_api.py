"""Jira Cloud API integration for importing issues as tasks."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from .exceptions import ConfigurationError, JiraAPIError
from .interfaces import JiraAPIInterface
from .models import JiraProject, TaskDraft

logger = structlog.get_logger(__name__)

ISSUE_FIELDS = "summary,description,issuetype,status"


def extract_description(description: Any) -> str:
    """Flatten a Jira description into plain text.

    Jira returns either a plain string or an Atlassian Document Format tree.
    For ADF, text nodes within a block are joined with spaces and blocks are
    joined with newlines.
    """
    if not description:
        return ""
    if isinstance(description, str):
        return description
    if not isinstance(description, dict) or not isinstance(description.get("content"), list):
        return ""

    blocks: list[str] = []
    for block in description["content"]:
        items = block.get("content") if isinstance(block, dict) else None
        if isinstance(items, list):
            texts = (item.get("text", "") for item in items if isinstance(item, dict))
            blocks.append(" ".join(texts))
        else:
            blocks.append("")
    return "\n".join(blocks).strip()


def issue_to_draft(issue: dict[str, Any]) -> TaskDraft:
    """Convert a Jira issue payload into a task draft titled ``[KEY] summary``."""
    fields = issue.get("fields", {})
    summary = fields.get("summary") or ""
    title = f"[{issue['key']}] {summary}".strip()
    description = extract_description(fields.get("description")) or summary or title
    return TaskDraft(title=title, description=description)


class JiraAPI(JiraAPIInterface):
    """Handles Jira REST API v3 interactions."""

    def __init__(self, base_url: str, email: str, api_token: str, timeout: float = 10.0):
        """Initialize Jira API client.

        Args:
            base_url: Jira site URL, e.g. https://example.atlassian.net
            email: Account email used for basic auth
            api_token: Jira API token
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.email = email
        self.api_token = api_token
        self.timeout = timeout

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        if not (self.base_url and self.email and self.api_token):
            raise ConfigurationError("Jira integration is not configured")

        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(auth=(self.email, self.api_token)) as client:
                response = client.get(
                    url,
                    params=params,
                    headers={"Accept": "application/json"},
                    timeout=self.timeout,
                )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Jira API error", url=url, status_code=e.response.status_code, error=str(e)
            )
            raise JiraAPIError(
                f"Jira API returned {e.response.status_code}",
                details={"url": url},
            ) from e
        except (httpx.RequestError, httpx.TimeoutException) as e:
            logger.error("Network error calling Jira", url=url, error=str(e))
            raise JiraAPIError("Could not reach Jira", details={"url": url}) from e
        except ValueError as e:
            logger.error("Error parsing Jira response", url=url, error=str(e))
            raise JiraAPIError("Invalid response from Jira", details={"url": url}) from e

    def _search(self, jql: str, max_results: int) -> list[TaskDraft]:
        data = self._get(
            "/rest/api/3/search",
            params={"jql": jql, "maxResults": max_results, "fields": ISSUE_FIELDS},
        )
        try:
            drafts = [issue_to_draft(issue) for issue in data["issues"]]
        except (KeyError, TypeError) as e:
            logger.error("Unexpected Jira search payload", jql=jql, error=str(e))
            raise JiraAPIError("Invalid response from Jira") from e

        logger.info("Fetched Jira issues", jql=jql, issue_count=len(drafts))
        return drafts

    def get_projects(self) -> list[JiraProject]:
        """List projects visible to the configured account."""
        data = self._get("/rest/api/3/project")
        try:
            return [JiraProject(key=project["key"], name=project["name"]) for project in data]
        except (KeyError, TypeError) as e:
            raise JiraAPIError("Invalid response from Jira") from e

    def fetch_issues_from_project(self, project_key: str, max_results: int = 50) -> list[TaskDraft]:
        """Fetch open issues of a project, newest first.

        Args:
            project_key: Jira project key
            max_results: Maximum number of issues to return

        Returns:
            Task drafts for each issue
        """
        jql = f'project = "{project_key}" AND status != Done ORDER BY created DESC'
        try:
            return self._search(jql, max_results)
        except JiraAPIError as e:
            raise JiraAPIError(
                f"Failed to fetch issues from Jira project {project_key}", details=e.details
            ) from e

    def fetch_issues_from_jql(self, jql: str, max_results: int = 50) -> list[TaskDraft]:
        """Fetch issues matching an arbitrary JQL query."""
        try:
            return self._search(jql, max_results)
        except JiraAPIError as e:
            raise JiraAPIError(
                "Failed to fetch issues from Jira using JQL", details=e.details
            ) from e
