"""Run-scoped state shared by every resolution step of one materialization."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field

from recipe2ws.config import ExecutableRecipe
from recipe2ws.errors import OperationCancelledError


class CancellationToken:
    """Cooperative cancellation flag checked by external calls."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def request_cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self, operation: str) -> None:
        """Raise ``OperationCancelledError`` when cancellation was requested."""
        if self._event.is_set():
            raise OperationCancelledError(f"{operation} cancelled")


@dataclass(slots=True)
class GenerationContext:
    """Mutable state for one run.

    One instance must not be shared between concurrent materializations: the
    prefetch cache and user input are read and written without locking.
    """

    prefetched: dict[str, str] = field(default_factory=dict)
    user_input: dict[str, str] = field(default_factory=dict)
    ide: str = ""
    workspace_path: str = ""
    env: dict[str, str] = field(default_factory=dict)
    recipe: ExecutableRecipe | None = None
    cancellation: CancellationToken = field(default_factory=CancellationToken)

    def getenv(self, name: str) -> str | None:
        """Look up ``name`` in the override map, then in the process environment."""
        if name in self.env:
            return self.env[name]
        return os.environ.get(name)
