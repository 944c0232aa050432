"""Structured logging helpers shared across the application."""

from __future__ import annotations

import contextvars
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import uuid4

_RUN_ID: contextvars.ContextVar[str] = contextvars.ContextVar(
    "recipe2ws_run_id",
    default="-",
)


def build_run_id() -> str:
    """Return a fresh run id."""
    return uuid4().hex


def set_run_id(run_id: str) -> contextvars.Token[str]:
    """Store the run id in run-local context."""
    return _RUN_ID.set(run_id)


def reset_run_id(token: contextvars.Token[str]) -> None:
    """Reset run-local context to the previous run id."""
    _RUN_ID.reset(token)


def get_run_id() -> str:
    """Return the current run id from context."""
    return _RUN_ID.get()


@contextmanager
def run_scope() -> Iterator[str]:
    """Bind a fresh run id for the duration of one materialization run."""
    run_id = build_run_id()
    token = set_run_id(run_id)
    try:
        yield run_id
    finally:
        reset_run_id(token)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    *,
    exc_info: Any | None = None,
    **fields: Any,
) -> None:
    """Emit a structured log event with run context fields."""
    payload: dict[str, Any] = {
        "event": event,
        "run_id": get_run_id(),
    }
    payload.update({key: value for key, value in fields.items() if value is not None})
    logger.log(level, event, extra=payload, exc_info=exc_info)


class _RunIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "run_id"):
            record.run_id = get_run_id()
        return True


def configure_logging(*, verbose: bool = False) -> None:
    """Send log records to stderr, tagged with the current run id."""
    handler = logging.StreamHandler()
    handler.addFilter(_RunIdFilter())
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(run_id)s] %(name)s: %(message)s")
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        handlers=[handler],
        force=True,
    )
