"""Git repository cloning for ``gitRepo`` context sources."""

from __future__ import annotations

import logging
from pathlib import Path

from recipe2ws.commands import default_command_timeout, run_process
from recipe2ws.config import GitRepository
from recipe2ws.context import CancellationToken
from recipe2ws.errors import RecipeValidationError, SourceFetchError
from recipe2ws.logging_utils import log_event

logger = logging.getLogger(__name__)

# provider -> (host, token user)
_PROVIDERS: dict[str, tuple[str, str]] = {
    "github": ("github.com", "x-access-token"),
    "bitbucket": ("bitbucket.org", "x-token-auth"),
}


def build_clone_url(repo: GitRepository, token: str | None = None) -> str:
    """Build an HTTPS clone URL, embedding ``token`` when one is given."""
    full_name = repo.full_name.strip()
    if not full_name:
        raise RecipeValidationError("git repository full name cannot be empty")

    provider = repo.provider.strip().lower() or "github"
    if provider not in _PROVIDERS:
        raise RecipeValidationError(f"unsupported git provider: {provider}")
    host, token_user = _PROVIDERS[provider]

    if token:
        return f"https://{token_user}:{token}@{host}/{full_name}.git"
    return f"https://{host}/{full_name}.git"


def _redact(text: str, token: str | None) -> str:
    if not token:
        return text
    return text.replace(token, "***")


def clone_repository(
    repo: GitRepository,
    destination: Path,
    *,
    token: str | None = None,
    cancellation: CancellationToken | None = None,
) -> None:
    """Clone ``repo`` into ``destination`` with the git CLI.

    The clone is attempted even without a token; public repositories work
    unauthenticated.
    """
    url = build_clone_url(repo, token)
    log_event(
        logger,
        logging.DEBUG,
        "git.clone_started",
        full_name=repo.full_name,
        provider=repo.provider or "github",
        destination=str(destination),
        authenticated=bool(token),
    )
    result = run_process(
        ["git", "clone", "--quiet", url, str(destination)],
        cancellation=cancellation,
        timeout_seconds=default_command_timeout(),
    )
    if result.returncode != 0:
        output = _redact(result.output.strip(), token)
        raise SourceFetchError(
            f"git clone failed: exit status {result.returncode} (output: {output})"
        )
    log_event(logger, logging.DEBUG, "git.clone_completed", destination=str(destination))
