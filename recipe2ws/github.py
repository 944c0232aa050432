"""GitHub raw-content fetching for ``github`` sources and remote recipes."""

from __future__ import annotations

import logging
import os

import httpx

from recipe2ws.config import GitReference, GitVersion
from recipe2ws.context import CancellationToken
from recipe2ws.errors import RecipeValidationError, SourceFetchError
from recipe2ws.logging_utils import log_event

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_ENV = "RECIPE2WS_HTTP_TIMEOUT"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
RAW_CONTENT_HOST = "raw.githubusercontent.com"


def default_http_timeout() -> float:
    """Return the HTTP timeout in seconds used by remote fetches."""
    raw = os.environ.get(HTTP_TIMEOUT_ENV)
    if raw is None or not raw.strip():
        return DEFAULT_HTTP_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s value %r", HTTP_TIMEOUT_ENV, raw)
        return DEFAULT_HTTP_TIMEOUT_SECONDS
    return value if value > 0 else DEFAULT_HTTP_TIMEOUT_SECONDS


def _version_ref(version: GitVersion | None) -> str:
    if version is None:
        return "main"
    if version.tag is not None:
        return version.tag
    if version.commit is not None:
        return version.commit
    return "main"


def convert_to_raw_url(github_path: str, version: GitVersion | None = None) -> str:
    """Convert a ``github.com`` URL to its ``raw.githubusercontent.com`` form.

    Handles ``owner/repo/path`` and ``owner/repo/blob|tree/<ref>/path``. When
    the URL carries no ref, ``version`` (tag, then commit) is used and the
    branch defaults to ``main``. Raw URLs and non-GitHub URLs are returned as-is.
    """
    if RAW_CONTENT_HOST in github_path or "github.com" not in github_path:
        return github_path

    path = github_path.removeprefix("https://").removeprefix("http://")
    path = path.removeprefix("github.com/")
    parts = path.split("/", 4)

    if len(parts) >= 4 and parts[2] in {"blob", "tree"}:
        if len(parts) < 5:
            raise RecipeValidationError(f"invalid github path format: {path}")
        owner, repo, _, ref, file_path = parts
    elif len(parts) >= 3:
        owner, repo = parts[0], parts[1]
        file_path = "/".join(parts[2:])
        ref = _version_ref(version)
    else:
        raise RecipeValidationError(f"invalid github path format: {path}")

    return f"https://{RAW_CONTENT_HOST}/{owner}/{repo}/{ref}/{file_path}"


def _read_body(client: httpx.Client, url: str, token: CancellationToken) -> str:
    with client.stream("GET", url) as response:
        if response.status_code != httpx.codes.OK:
            log_event(
                logger,
                logging.WARNING,
                "github.fetch_failed",
                url=url,
                status_code=response.status_code,
            )
            raise SourceFetchError(f"github fetch returned status {response.status_code}")
        chunks: list[bytes] = []
        for chunk in response.iter_bytes():
            token.raise_if_cancelled(f"fetch {url}")
            chunks.append(chunk)
        encoding = response.encoding or "utf-8"
    return b"".join(chunks).decode(encoding, errors="replace")


def fetch_url(
    url: str,
    *,
    cancellation: CancellationToken | None = None,
    client: httpx.Client | None = None,
) -> str:
    """GET ``url`` and return the body; any non-200 status is an error.

    The body is streamed and ``cancellation`` is checked between chunks.
    Connecting and waiting for the first byte are bounded by the HTTP
    timeout, not by the token.
    """
    token = cancellation or CancellationToken()
    token.raise_if_cancelled(f"fetch {url}")

    log_event(logger, logging.DEBUG, "github.fetch_started", url=url)
    try:
        if client is not None:
            return _read_body(client, url, token)
        with httpx.Client(timeout=default_http_timeout(), follow_redirects=True) as owned:
            return _read_body(owned, url, token)
    except httpx.HTTPError as exc:
        raise SourceFetchError(f"failed to fetch from github: {exc}") from exc


def fetch_github(
    reference: GitReference,
    *,
    cancellation: CancellationToken | None = None,
    client: httpx.Client | None = None,
) -> str:
    """Fetch the raw content behind a GitHub file reference."""
    if not reference.path:
        raise RecipeValidationError("github path cannot be empty")
    url = convert_to_raw_url(reference.path, reference.version)
    return fetch_url(url, cancellation=cancellation, client=client)
