"""End-to-end materialization of realistic recipes into a temporary workspace."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import pytest

from recipe2ws.collaborators import Collaborators
from recipe2ws.config import ExecutableRecipe, GitRepository
from recipe2ws.context import CancellationToken, GenerationContext
from recipe2ws.recipe import RecipeRunner
from recipe2ws.schemas import DirectoryEntry


class _FakeCloner:
    def __init__(self) -> None:
        self.calls: list[tuple[str, Path, str | None]] = []

    def __call__(
        self,
        repo: GitRepository,
        destination: Path,
        *,
        token: str | None = None,
        cancellation: CancellationToken | None = None,
    ) -> None:
        self.calls.append((repo.full_name, destination, token))
        destination.mkdir(parents=True)
        (destination / "README.md").write_text("cloned\n", encoding="utf-8")


def _python_cmd(code: str) -> dict[str, Any]:
    return {"cmd": sys.executable, "args": ["-c", code]}


def _claude_recipe(notes_file: Path) -> ExecutableRecipe:
    prefetch_payload = json.dumps({"data": [{"id": "branch", "data": "feature/login"}]})
    return ExecutableRecipe.model_validate(
        {
            "recipe": {
                "prefetch": {"entries": [{"cmd": _python_cmd(f"print({prefetch_payload!r})")}]},
                "context": {
                    "entries": [
                        {"path": "README.md", "from": {"text": "# Project\n"}},
                        {"path": "context/branch.txt", "from": {"prefetchId": "branch"}},
                        {
                            "path": "context/brief.md",
                            "from": {
                                "combined": {
                                    "items": [
                                        {"text": "Branch: "},
                                        {"prefetchId": "branch"},
                                        {"text": "\n"},
                                        {"cmd": _python_cmd("print('generated')")},
                                    ]
                                }
                            },
                        },
                        {
                            "path": "context/input.md",
                            "from": {
                                "userInput": {
                                    "entries": [
                                        {"name": "ticket", "description": "Ticket key"},
                                        {"name": "extra", "optional": True},
                                    ]
                                }
                            },
                        },
                        {"path": "context/notes.md", "from": {"localFile": str(notes_file)}},
                        {
                            "path": "cursor-only.md",
                            "from": {"text": "hidden"},
                            "filter": {"ide": ["cursor-cli"]},
                        },
                        {
                            "path": "repos/app",
                            "from": {
                                "gitRepo": {"fullName": "acme/app", "authTokenEnvVar": "GH_TOKEN"}
                            },
                        },
                    ]
                },
                "ide": {
                    "commands": {
                        "entries": [
                            {"name": "review", "from": {"text": "Review the diff.\n"}},
                            {"name": "status", "from": {"cmd": _python_cmd("print('ok')")}},
                        ]
                    },
                    "permissions": {
                        "allow": [
                            {"bash": "make test"},
                            {"read": "src/**"},
                            {"network": True},
                        ],
                        "deny": [{"write": ".env"}],
                    },
                    "mcp": {
                        "servers": {
                            "docs": {"http": {"url": "https://mcp.example.com/docs"}},
                            "fs": {"stdio": {"command": "npx server-fs ."}},
                        }
                    },
                },
            },
            "entryPoint": {"ideType": "claude", "start": {"command": "review"}},
        }
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "ws"
    root.mkdir()
    (root / ".mcp.json").write_text(
        json.dumps({"mcpServers": {"legacy": {"type": "http", "url": "http://old"}}, "x": 1}),
        encoding="utf-8",
    )
    (root / ".claude").mkdir()
    (root / ".claude" / "settings.local.json").write_text(
        json.dumps({"model": "opus", "permissions": {"allow": ["Bash(ls)"], "ask": ["Bash(rm)"]}}),
        encoding="utf-8",
    )
    return root


def test_claude_recipe_materializes_and_persists(tmp_path: Path, workspace: Path) -> None:
    notes_file = tmp_path / "notes.md"
    notes_file.write_text("Remember the migration.\n", encoding="utf-8")
    cloner = _FakeCloner()
    runner = RecipeRunner(
        _claude_recipe(notes_file),
        Collaborators(clone_repository=cloner),
        workspace=str(workspace),
    )
    gen_ctx = GenerationContext(user_input={"ticket": "APP-7"}, env={"GH_TOKEN": "secret"})

    result = runner.materialize(gen_ctx)
    plan = runner.execute(gen_ctx)

    assert [entry.path for entry in result.entries] == [
        "README.md",
        "context/branch.txt",
        "context/brief.md",
        "context/input.md",
        "context/notes.md",
        "repos/app",
        ".claude/commands/review.md",
        ".claude/commands/status.md",
        ".claude/settings.local.json",
        ".mcp.json",
    ]
    assert isinstance(result.entries[5], DirectoryEntry)
    assert cloner.calls == [("acme/app", workspace / "repos" / "app", "secret")]

    def read(relative: str) -> str:
        return (workspace / relative).read_text(encoding="utf-8")

    assert read("context/branch.txt").strip() == "feature/login"
    assert read("context/brief.md").replace("\r\n", "\n") == (
        "Branch: feature/login\ngenerated\n"
    )
    assert "**Value**: APP-7" in read("context/input.md")
    assert read("context/notes.md") == "Remember the migration.\n"
    assert read("repos/app/README.md") == "cloned\n"
    assert not (workspace / "cursor-only.md").exists()
    assert read(".claude/commands/status.md").strip() == "ok"

    settings = json.loads(read(".claude/settings.local.json"))
    assert settings["model"] == "opus"
    assert settings["permissions"] == {
        "allow": [
            "Bash(ls)",
            "Bash(make test)",
            "Read(src/**)",
            "mcp__docs",
            "mcp__fs",
            "SlashCommand(/review)",
            "SlashCommand(/status)",
        ],
        "deny": ["Write(.env)"],
        "ask": ["Bash(rm)"],
        "defaultMode": "acceptEdits",
    }
    assert settings["enabledMcpjsonServers"] == ["docs", "fs"]
    assert settings["enableAllProjectMcpServers"] is True

    mcp = json.loads(read(".mcp.json"))
    assert mcp["x"] == 1
    assert mcp["mcpServers"] == {
        "legacy": {"type": "http", "url": "http://old"},
        "docs": {"type": "http", "url": "https://mcp.example.com/docs"},
        "fs": {"type": "stdio", "command": "npx", "args": ["server-fs", "."], "env": {}},
    }

    assert plan.workspace == str(workspace)
    assert plan.executable == "claude"
    assert plan.args == ["/review"]


def test_codex_recipe_plans_configured_launch(tmp_path: Path) -> None:
    executable = ExecutableRecipe.model_validate(
        {
            "recipe": {
                "ide": {
                    "commands": {"entries": [{"name": "review", "from": {"text": "Review.\n"}}]},
                    "permissions": {"allow": [{"network": True}]},
                    "mcp": {
                        "servers": {"fs": {"stdio": {"command": "npx", "args": ["server-fs"]}}}
                    },
                }
            },
            "entryPoint": {
                "ideType": "codex",
                "workspace": {"enabled": True},
                "start": {"command": "review"},
            },
        }
    )
    runner = RecipeRunner(executable, workspace=str(tmp_path))
    gen_ctx = GenerationContext()

    result = runner.materialize(gen_ctx)
    plan = runner.execute(gen_ctx)

    assert [entry.path for entry in result.entries] == [
        ".codex/commands/review.md",
        ".codex/__commands_rules__.md",
    ]
    rules = (tmp_path / ".codex" / "__commands_rules__.md").read_text(encoding="utf-8")
    assert ".codex/commands/<name>.md" in rules
    assert plan.args == [
        "--full-auto",
        "--config",
        'sandbox_mode="danger-full-access"',
        "--config",
        "sandbox_workspace_write.network_access='true'",
        "--config",
        'mcp_servers.fs.command="npx"',
        "--config",
        'mcp_servers.fs.args=["server-fs"]',
        "Read and remember .codex/__commands_rules__.md. Then execute command /review",
    ]
