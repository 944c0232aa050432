"""Workspace destination resolution."""

from __future__ import annotations

import logging
import secrets
from datetime import date
from pathlib import Path

from recipe2ws.config import WorkspaceConfig
from recipe2ws.errors import MaterializationError
from recipe2ws.logging_utils import log_event

logger = logging.getLogger(__name__)

DEFAULT_SLUG_LENGTH = 8


def generate_slug(length: int) -> str:
    """Return ``length`` random lowercase hex characters."""
    if length <= 0:
        length = DEFAULT_SLUG_LENGTH
    return secrets.token_hex((length + 1) // 2)[:length]


def resolve_workspace(config: WorkspaceConfig | None) -> str:
    """Compute the workspace root for ``config`` without touching the filesystem.

    Returns ``""`` when the workspace is disabled. Relative paths are placed
    under the user's home directory. A ``unique`` block appends a
    ``<YYYYMMDD>_<slug>`` directory so repeated runs never collide.
    """
    if config is None or not config.enabled:
        return ""

    workspace = Path(config.path)
    if not config.absolute:
        try:
            home = Path.home()
        except RuntimeError as exc:
            raise MaterializationError(f"failed to get home directory: {exc}") from exc
        workspace = home / config.path

    if config.unique is not None:
        workspace = workspace / f"{date.today():%Y%m%d}_{generate_slug(config.unique.length)}"

    log_event(logger, logging.DEBUG, "workspace.resolved", workspace=str(workspace))
    return str(workspace)
