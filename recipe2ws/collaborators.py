"""Injectable bundle of the external I/O functions used during resolution."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from recipe2ws.commands import execute_command
from recipe2ws.git import clone_repository
from recipe2ws.github import fetch_github
from recipe2ws.issues import IssuesResult, fetch_jira_issues, fetch_linear_issues


@dataclass(slots=True)
class Collaborators:
    """External calls made by the resolver, prefetch processor, and adapters.

    Each callable accepts a ``cancellation`` keyword. Tests replace individual
    members with fakes.
    """

    execute_command: Callable[..., str] = execute_command
    fetch_remote_file: Callable[..., str] = fetch_github
    clone_repository: Callable[..., None] = clone_repository
    fetch_jira_issues: Callable[..., IssuesResult] = fetch_jira_issues
    fetch_linear_issues: Callable[..., IssuesResult] = fetch_linear_issues
