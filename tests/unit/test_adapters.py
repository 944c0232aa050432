"""Unit tests for the shared tool adapter."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from recipe2ws.adapters import IDEAdapter, SettingsInput, SettingsStrategy, merge_mcp_servers
from recipe2ws.config import Ide, Mcp
from recipe2ws.context import GenerationContext
from recipe2ws.errors import RecipeValidationError, SettingsMergeError
from recipe2ws.schemas import FileEntry, MaterializedEntry


class _RecordingStrategy(SettingsStrategy):
    def __init__(self) -> None:
        self.received: SettingsInput | None = None

    def update(self, settings: SettingsInput) -> list[MaterializedEntry]:
        self.received = settings
        return [FileEntry(path="settings.json", content="{}")]

    def extra_entries(self, ide: Ide, gen_ctx: GenerationContext) -> list[MaterializedEntry]:
        return [FileEntry(path="extra.md", content="extra")]


def _ide(data: dict[str, object]) -> Ide:
    return Ide.model_validate(data)


def test_output_order_is_commands_settings_mcp_extras(
    gen_ctx: GenerationContext, tmp_path: Path
) -> None:
    strategy = _RecordingStrategy()
    adapter = IDEAdapter(".tool/commands", ".tool/mcp.json", strategy)
    ide = _ide(
        {
            "commands": {
                "entries": [
                    {"name": "plan", "from": {"text": "Plan it"}},
                    {"name": "ship", "from": {"text": "Ship it"}},
                ]
            },
            "mcp": {"servers": {"docs": {"http": {"url": "https://mcp.example"}}}},
        }
    )

    result = adapter.materialize(ide, gen_ctx)

    assert [entry.path for entry in result.entries] == [
        ".tool/commands/plan.md",
        ".tool/commands/ship.md",
        "settings.json",
        ".tool/mcp.json",
        "extra.md",
    ]
    assert result.files()[".tool/commands/ship.md"] == "Ship it"
    assert strategy.received is not None
    assert strategy.received.command_names == ["plan", "ship"]
    assert strategy.received.mcp_server_names == ["docs"]
    assert strategy.received.base_dir == tmp_path


def test_command_requires_name(gen_ctx: GenerationContext) -> None:
    adapter = IDEAdapter(".tool/commands")

    with pytest.raises(RecipeValidationError, match="command name cannot be empty"):
        adapter.materialize(_ide({"commands": {"entries": [{"from": {"text": "x"}}]}}), gen_ctx)


def test_command_requires_source(gen_ctx: GenerationContext) -> None:
    adapter = IDEAdapter(".tool/commands")

    with pytest.raises(RecipeValidationError, match="command plan must have a 'from' source"):
        adapter.materialize(_ide({"commands": {"entries": [{"name": "plan"}]}}), gen_ctx)


def test_missing_ide_is_rejected(gen_ctx: GenerationContext) -> None:
    with pytest.raises(RecipeValidationError, match="ide cannot be nil"):
        IDEAdapter(".tool/commands").materialize(None, gen_ctx)


def test_no_mcp_file_without_mcp_path(gen_ctx: GenerationContext) -> None:
    adapter = IDEAdapter(".tool/commands")
    ide = _ide({"mcp": {"servers": {"docs": {"http": {"url": "https://mcp.example"}}}}})

    assert adapter.materialize(ide, gen_ctx).entries == []


def test_mcp_file_merges_with_existing_file(gen_ctx: GenerationContext, tmp_path: Path) -> None:
    existing = {
        "mcpServers": {
            "legacy": {"type": "stdio", "command": "legacy-server"},
            "docs": {"type": "http", "url": "https://old.example"},
        },
        "inputs": [{"id": "token"}],
    }
    (tmp_path / ".mcp.json").write_text(json.dumps(existing), encoding="utf-8")
    adapter = IDEAdapter(".tool/commands", ".mcp.json")
    ide = _ide(
        {
            "mcp": {
                "servers": {
                    "docs": {"http": {"url": "https://new.example"}},
                    "search": {"stdio": {"command": "npx -y search-server --port 3"}},
                    "unset": {},
                }
            }
        }
    )

    result = adapter.materialize(ide, gen_ctx)

    merged = json.loads(result.files()[".mcp.json"])
    assert merged["inputs"] == [{"id": "token"}]
    assert merged["mcpServers"]["legacy"] == {"type": "stdio", "command": "legacy-server"}
    assert merged["mcpServers"]["docs"] == {"type": "http", "url": "https://new.example"}
    assert merged["mcpServers"]["search"] == {
        "type": "stdio",
        "command": "npx",
        "args": ["-y", "search-server", "--port", "3"],
        "env": {},
    }
    assert "unset" not in merged["mcpServers"]


def test_stdio_explicit_args_keep_command_intact() -> None:
    mcp = Mcp.model_validate(
        {"servers": {"fs": {"stdio": {"command": "my server", "args": ["--root", "."]}}}}
    )

    merged = merge_mcp_servers({}, mcp.servers)

    assert merged == {
        "mcpServers": {
            "fs": {"type": "stdio", "command": "my server", "args": ["--root", "."], "env": {}}
        }
    }


def test_unparsable_existing_mcp_file_is_an_error(
    gen_ctx: GenerationContext, tmp_path: Path
) -> None:
    (tmp_path / ".mcp.json").write_text("{not json", encoding="utf-8")
    adapter = IDEAdapter(".tool/commands", ".mcp.json")

    with pytest.raises(SettingsMergeError, match="failed to parse existing mcp json"):
        adapter.materialize(_ide({"mcp": {"servers": {}}}), gen_ctx)


def test_existing_mcp_file_must_hold_an_object(
    gen_ctx: GenerationContext, tmp_path: Path
) -> None:
    (tmp_path / ".mcp.json").write_text("[]", encoding="utf-8")
    adapter = IDEAdapter(".tool/commands", ".mcp.json")

    with pytest.raises(SettingsMergeError):
        adapter.materialize(_ide({"mcp": {"servers": {}}}), gen_ctx)


def test_default_strategy_adds_nothing(gen_ctx: GenerationContext) -> None:
    adapter = IDEAdapter(".tool/commands")

    assert adapter.materialize(_ide({}), gen_ctx).entries == []
    props = adapter.prepare_start(gen_ctx)
    assert props.prompt_prefix == ""
    assert props.omit_default_prompt is False
    assert props.extra_args == []
