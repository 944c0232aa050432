"""Jira and Linear issue export used by issue-tracker context sources."""

from __future__ import annotations

import base64
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

import httpx

from recipe2ws.config import IssuesFilter, JiraIssuesSource, LinearIssuesSource, TimeRange
from recipe2ws.context import CancellationToken
from recipe2ws.errors import RecipeValidationError, SourceFetchError
from recipe2ws.github import default_http_timeout
from recipe2ws.logging_utils import log_event

logger = logging.getLogger(__name__)

JIRA_BASE_URL_ENV = "RECIPE2WS_JIRA_BASE_URL"
LINEAR_BASE_URL_ENV = "RECIPE2WS_LINEAR_BASE_URL"
DEFAULT_LINEAR_URL = "https://api.linear.app/graphql"
MAX_ISSUES = 1000
JIRA_PAGE_SIZE = 50
JIRA_FIELDS = [
    "summary",
    "description",
    "status",
    "assignee",
    "created",
    "updated",
    "issuetype",
    "priority",
]
LINEAR_QUERY = """query($filter: IssueFilter, $after: String) {
  issues(filter: $filter, after: $after, first: 50) {
    nodes {
      identifier
      title
      description
      state { name }
      assignee { name }
      createdAt
      updatedAt
      priority
      priorityLabel
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}"""


@dataclass(slots=True)
class IssueSummary:
    id: str
    title: str


@dataclass(slots=True)
class IssuesResult:
    """Index of fetched issues plus the full JSON document of each one."""

    summary: list[IssueSummary] = field(default_factory=list)
    issues: dict[str, str] = field(default_factory=dict)

    def summary_json(self) -> str:
        """Serialize the summary list as indented JSON."""
        payload = [{"id": item.id, "title": item.title} for item in self.summary]
        return json.dumps(payload, indent=2)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _jql_date(value: datetime) -> str:
    return _as_utc(value).strftime("%Y-%m-%d")


def _iso_timestamp(value: datetime) -> str:
    moment = _as_utc(value)
    return f"{moment:%Y-%m-%dT%H:%M:%S}.{moment.microsecond // 1000:03d}Z"


def _range_clauses(column: str, time_range: TimeRange | None) -> list[str]:
    if time_range is None:
        return []
    clauses: list[str] = []
    if time_range.from_ is not None:
        clauses.append(f'{column} >= "{_jql_date(time_range.from_)}"')
    if time_range.to is not None:
        clauses.append(f'{column} <= "{_jql_date(time_range.to)}"')
    return clauses


def build_jql(projects: list[str], issues_filter: IssuesFilter | None) -> str:
    """Build the JQL query for the configured projects and date filters."""
    clauses: list[str] = []
    if projects:
        quoted = ", ".join(f'"{project}"' for project in projects)
        clauses.append(f"project IN ({quoted})")
    if issues_filter is not None:
        clauses.extend(_range_clauses("created", issues_filter.created_at))
        clauses.extend(_range_clauses("updated", issues_filter.updated_at))

    if not clauses:
        # Jira Cloud rejects unbounded queries.
        return "created >= -30d ORDER BY created DESC"
    return " AND ".join(clauses) + " ORDER BY created DESC"


def _linear_range(time_range: TimeRange | None) -> dict[str, str]:
    if time_range is None:
        return {}
    bounds: dict[str, str] = {}
    if time_range.from_ is not None:
        bounds["gte"] = _iso_timestamp(time_range.from_)
    if time_range.to is not None:
        bounds["lte"] = _iso_timestamp(time_range.to)
    return bounds


def build_linear_filter(
    teams: list[str], issues_filter: IssuesFilter | None
) -> dict[str, Any] | None:
    """Build the GraphQL ``IssueFilter`` object, or ``None`` when unfiltered."""
    result: dict[str, Any] = {}
    if teams:
        result["team"] = {"key": {"in": list(teams)}}
    if issues_filter is not None:
        created = _linear_range(issues_filter.created_at)
        if created:
            result["createdAt"] = created
        updated = _linear_range(issues_filter.updated_at)
        if updated:
            result["updatedAt"] = updated
    return result or None


def jira_authorization(token: str) -> str:
    """Return the Basic auth header value for an ``email:token`` pair or bare API key."""
    credential = token if ":" in token else f":{token}"
    return "Basic " + base64.b64encode(credential.encode("utf-8")).decode("ascii")


def _post_json(
    client: httpx.Client,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    *,
    tracker: str,
) -> Any:
    try:
        response = client.post(url, json=payload, headers=headers)
    except httpx.HTTPError as exc:
        raise SourceFetchError(f"failed to fetch from {tracker}: {exc}") from exc
    if response.status_code != httpx.codes.OK:
        raise SourceFetchError(
            f"{tracker} API returned status {response.status_code}: {response.text}"
        )
    try:
        return response.json()
    except ValueError as exc:
        raise SourceFetchError(f"failed to parse {tracker} response: {exc}") from exc


def fetch_jira_issues(
    source: JiraIssuesSource,
    token: str | None,
    *,
    cancellation: CancellationToken | None = None,
    client: httpx.Client | None = None,
) -> IssuesResult:
    """Export issues from Jira Cloud through the ``search/jql`` endpoint."""
    organization = source.organization.strip()
    if not organization:
        raise RecipeValidationError("jira organization cannot be empty")

    base_url = os.environ.get(JIRA_BASE_URL_ENV) or f"https://{organization}.atlassian.net"
    url = base_url.rstrip("/") + "/rest/api/3/search/jql"
    headers = {"Accept": "application/json"}
    if token:
        headers["Authorization"] = jira_authorization(token)

    jql = build_jql(source.projects, source.filter)
    log_event(
        logger,
        logging.DEBUG,
        "issues.jira_fetch_started",
        organization=organization,
        projects=source.projects,
    )

    http = client or httpx.Client(timeout=default_http_timeout())
    issues: list[dict[str, Any]] = []
    next_page_token = ""
    try:
        while True:
            if cancellation is not None:
                cancellation.raise_if_cancelled("jira fetch")
            payload: dict[str, Any] = {
                "jql": jql,
                "maxResults": JIRA_PAGE_SIZE,
                "fields": JIRA_FIELDS,
            }
            if next_page_token:
                payload["nextPageToken"] = next_page_token
            body = _post_json(http, url, payload, headers, tracker="jira")
            if not isinstance(body, dict):
                raise SourceFetchError("failed to parse jira response: expected a JSON object")

            page = body.get("issues") or []
            issues.extend(issue for issue in page if isinstance(issue, dict))
            next_page_token = str(body.get("nextPageToken") or "")
            if not next_page_token or len(issues) >= MAX_ISSUES:
                break
    finally:
        if client is None:
            http.close()

    result = IssuesResult()
    for issue in issues[:MAX_ISSUES]:
        key = str(issue.get("key") or "")
        fields = issue.get("fields") if isinstance(issue.get("fields"), dict) else {}
        result.summary.append(IssueSummary(id=key, title=str(fields.get("summary") or "")))
        result.issues[key] = json.dumps({"key": key, "fields": fields}, indent=2)
    log_event(logger, logging.DEBUG, "issues.jira_fetch_completed", count=len(result.summary))
    return result


def fetch_linear_issues(
    source: LinearIssuesSource,
    token: str | None,
    *,
    cancellation: CancellationToken | None = None,
    client: httpx.Client | None = None,
) -> IssuesResult:
    """Export issues from the Linear GraphQL API."""
    if not token:
        raise RecipeValidationError(
            "linear API requires authentication: set the auth token env var"
        )

    url = os.environ.get(LINEAR_BASE_URL_ENV) or DEFAULT_LINEAR_URL
    headers = {"Authorization": token}
    issue_filter = build_linear_filter(source.teams, source.filter)
    log_event(logger, logging.DEBUG, "issues.linear_fetch_started", teams=source.teams)

    http = client or httpx.Client(timeout=default_http_timeout())
    issues: list[dict[str, Any]] = []
    cursor = ""
    try:
        while True:
            if cancellation is not None:
                cancellation.raise_if_cancelled("linear fetch")
            variables: dict[str, Any] = {}
            if issue_filter is not None:
                variables["filter"] = issue_filter
            if cursor:
                variables["after"] = cursor
            body = _post_json(
                http,
                url,
                {"query": LINEAR_QUERY, "variables": variables},
                headers,
                tracker="linear",
            )
            if not isinstance(body, dict):
                raise SourceFetchError("failed to parse linear response: expected a JSON object")

            errors = body.get("errors") or []
            if errors:
                messages = "; ".join(
                    str(error.get("message", "")) if isinstance(error, dict) else str(error)
                    for error in errors
                )
                raise SourceFetchError(f"linear API returned errors: {messages}")

            data = body.get("data")
            if not isinstance(data, dict):
                break
            connection = data.get("issues") or {}
            issues.extend(node for node in connection.get("nodes") or [] if isinstance(node, dict))
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage") or len(issues) >= MAX_ISSUES:
                break
            cursor = str(page_info.get("endCursor") or "")
    finally:
        if client is None:
            http.close()

    result = IssuesResult()
    for issue in issues[:MAX_ISSUES]:
        identifier = str(issue.get("identifier") or "")
        result.summary.append(IssueSummary(id=identifier, title=str(issue.get("title") or "")))
        result.issues[identifier] = json.dumps(issue, indent=2)
    log_event(logger, logging.DEBUG, "issues.linear_fetch_completed", count=len(result.summary))
    return result
