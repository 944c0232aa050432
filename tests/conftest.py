"""Shared fixtures for recipe2ws tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from recipe2ws.commands import ALLOWED_COMMANDS_ENV, COMMAND_TIMEOUT_ENV
from recipe2ws.context import GenerationContext


@pytest.fixture(autouse=True)
def _isolated_command_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(ALLOWED_COMMANDS_ENV, raising=False)
    monkeypatch.delenv(COMMAND_TIMEOUT_ENV, raising=False)


@pytest.fixture
def gen_ctx(tmp_path: Path) -> GenerationContext:
    """A fresh context whose workspace is the test's temporary directory."""
    return GenerationContext(workspace_path=str(tmp_path))
