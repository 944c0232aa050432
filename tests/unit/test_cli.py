"""Unit tests for the recipe2ws command line."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from recipe2ws import __version__
from recipe2ws.cli import app
from recipe2ws.tools import SUPPORTED_TOOLS

runner = CliRunner()

_HELLO_RECIPE = """\
recipe:
  context:
    entries:
      - path: hello.txt
        from:
          text: Hello
      - path: greeting.txt
        from:
          userInput:
            entries:
              - name: who
entryPoint:
  ideType: claude
  start:
    prompt: Say hi
"""


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("recipe2ws.cli.configure_logging", lambda *, verbose=False: None)


@pytest.fixture
def recipe_file(tmp_path: Path) -> Path:
    path = tmp_path / "recipe.yaml"
    path.write_text(_HELLO_RECIPE, encoding="utf-8")
    return path


def test_tools_lists_supported_tools() -> None:
    result = runner.invoke(app, ["tools"])

    assert result.exit_code == 0
    assert result.output.split() == list(SUPPORTED_TOOLS)


def test_tools_json() -> None:
    result = runner.invoke(app, ["tools", "--json"])

    assert result.exit_code == 0
    assert json.loads(result.output) == ["claude", "cursor-cli", "codex", "junie"]


def test_version() -> None:
    result = runner.invoke(app, ["version"])

    assert result.exit_code == 0
    assert result.output.strip() == __version__


def test_materialize_writes_under_root(recipe_file: Path, tmp_path: Path) -> None:
    root = tmp_path / "ws"

    result = runner.invoke(
        app, ["materialize", str(recipe_file), "--root", str(root), "--input", "who=World"]
    )

    assert result.exit_code == 0, result.output
    assert "file  hello.txt" in result.output
    assert "Wrote 2 entries under" in result.output
    assert (root / "hello.txt").read_text(encoding="utf-8") == "Hello"
    assert (root / "greeting.txt").read_text(encoding="utf-8").startswith("# User Input")


def test_materialize_dry_run_json_writes_nothing(recipe_file: Path, tmp_path: Path) -> None:
    root = tmp_path / "ws"

    result = runner.invoke(
        app,
        [
            "materialize",
            str(recipe_file),
            "--root",
            str(root),
            "-i",
            "who=World",
            "--dry-run",
            "--json",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["dry_run"] is True
    assert payload["entries"][0] == {"type": "file", "path": "hello.txt", "content": "Hello"}
    assert not (root / "hello.txt").exists()


def test_materialize_rejects_malformed_input(recipe_file: Path, tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["materialize", str(recipe_file), "--root", str(tmp_path), "--input", "who"]
    )

    assert result.exit_code == 1
    assert "Invalid --input value 'who': expected NAME=VALUE." in result.output


def test_materialize_reports_missing_required_input(recipe_file: Path, tmp_path: Path) -> None:
    result = runner.invoke(app, ["materialize", str(recipe_file), "--root", str(tmp_path)])

    assert result.exit_code == 1
    assert "Materialization failed:" in result.output
    assert "who" in result.output


def test_materialize_requires_recipe_or_id() -> None:
    result = runner.invoke(app, ["materialize"])

    assert result.exit_code == 1
    assert "Provide exactly one of RECIPE or --id." in result.output


def test_materialize_reports_unreadable_recipe(tmp_path: Path) -> None:
    bad = tmp_path / "bad.yaml"
    bad.write_text("- just\n- a list\n", encoding="utf-8")

    result = runner.invoke(app, ["materialize", str(bad)])

    assert result.exit_code == 1
    assert "Failed to load recipe:" in result.output


def test_start_prints_launch_command(recipe_file: Path, tmp_path: Path) -> None:
    root = tmp_path / "ws"

    result = runner.invoke(
        app, ["start", str(recipe_file), "--root", str(root), "--input", "who=World"]
    )

    assert result.exit_code == 0, result.output
    assert result.output.strip().endswith("&& claude 'Say hi'")
    assert (root / "hello.txt").is_file()


def test_start_ide_override_json(recipe_file: Path, tmp_path: Path) -> None:
    root = tmp_path / "ws"

    result = runner.invoke(
        app,
        [
            "start",
            str(recipe_file),
            "--root",
            str(root),
            "--ide",
            "cursor-cli",
            "--input",
            "who=World",
            "--json",
        ],
    )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["tool"] == "cursor-cli"
    assert payload["executable"] == "cursor-agent"
    assert payload["args"] == ["-f", "Say hi"]
