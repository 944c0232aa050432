"""Exception hierarchy raised while materializing recipes."""

from __future__ import annotations

from typing import Self


class MaterializationError(RuntimeError):
    """Base error for every failure surfaced by recipe materialization."""

    def wrap(self, context: str) -> Self:
        """Return a copy of this error with ``context`` prefixed to its message."""
        return type(self)(f"{context}: {self}")


class RecipeValidationError(MaterializationError, ValueError):
    """A recipe node is empty, unset, or names something unsupported."""


class SourceFetchError(MaterializationError):
    """An external command, fetch, clone, or file read failed."""


class MissingReferenceError(MaterializationError):
    """A prefetch id or required user input value was not provided."""


class PathEscapeError(MaterializationError):
    """A materialized entry resolves outside of the persistence root."""


class SettingsMergeError(MaterializationError):
    """An existing on-disk settings or MCP file could not be merged."""


class OperationCancelledError(MaterializationError):
    """The run's cancellation token was triggered during an external call."""
