"""Sandboxed writer that commits materialized results under a root directory."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from recipe2ws.errors import MaterializationError, PathEscapeError, RecipeValidationError
from recipe2ws.logging_utils import log_event
from recipe2ws.schemas import DirectoryEntry, FileEntry, MaterializedResult

logger = logging.getLogger(__name__)


def _is_within(candidate: str, root: str) -> bool:
    return candidate == root or candidate.startswith(root.rstrip(os.sep) + os.sep)


def resolve_within_root(root: str | os.PathLike[str], relative_path: str) -> Path:
    """Return the absolute target for ``relative_path`` under ``root``.

    Leading separators are stripped so absolute-looking paths stay inside the
    root. Containment is checked on the normalized path and again after
    symlinks are resolved.
    """
    stripped = relative_path.lstrip("/\\")
    root_abs = os.path.normpath(os.path.abspath(root))
    target = os.path.normpath(os.path.join(root_abs, stripped))
    if not _is_within(target, root_abs):
        raise PathEscapeError("path escapes root")
    if not _is_within(os.path.realpath(target), os.path.realpath(root_abs)):
        raise PathEscapeError("path escapes root")
    return Path(target)


def persist_materialized_result(
    root: str | os.PathLike[str],
    result: MaterializedResult | None,
) -> None:
    """Write every entry of ``result`` beneath ``root``.

    All entries are validated before the first write, so a containment
    violation leaves the filesystem untouched.
    """
    if not str(root).strip():
        raise RecipeValidationError("root path cannot be empty")
    if result is None:
        raise RecipeValidationError("materialized result cannot be nil")
    if not result.entries:
        return

    planned: list[tuple[Path, FileEntry | DirectoryEntry]] = []
    for index, entry in enumerate(result.entries):
        if isinstance(entry, FileEntry) and not entry.path.strip("/\\"):
            raise RecipeValidationError(f"entry {index}: file path cannot be empty")
        try:
            target = resolve_within_root(root, entry.path)
        except PathEscapeError as exc:
            log_event(
                logger, logging.WARNING, "persist.path_rejected", index=index, path=entry.path
            )
            raise exc.wrap(f"entry {index}") from exc
        planned.append((target, entry))

    for target, entry in planned:
        try:
            if isinstance(entry, DirectoryEntry):
                target.mkdir(parents=True, exist_ok=True)
                log_event(logger, logging.DEBUG, "persist.directory_created", path=entry.path)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(entry.content, encoding="utf-8", newline="")
        except OSError as exc:
            raise MaterializationError(f"failed to write {entry.path}: {exc}") from exc
        log_event(
            logger,
            logging.DEBUG,
            "persist.file_written",
            path=entry.path,
            bytes=len(entry.content.encode("utf-8")),
        )

    log_event(
        logger,
        logging.INFO,
        "persist.completed",
        root=str(root),
        entries=len(planned),
    )
