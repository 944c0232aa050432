"""Shared tool adapter: commands, settings delegation, and MCP server files."""

from __future__ import annotations

import json
import logging
from abc import ABC
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from recipe2ws.collaborators import Collaborators
from recipe2ws.config import Command, Ide, Mcp, McpServer, Permissions
from recipe2ws.context import GenerationContext
from recipe2ws.errors import MaterializationError, RecipeValidationError, SettingsMergeError
from recipe2ws.logging_utils import log_event
from recipe2ws.resolver import SourceResolver
from recipe2ws.schemas import ExecProps, FileEntry, MaterializedEntry, MaterializedResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SettingsInput:
    """What a settings strategy needs to update a tool's settings file."""

    permissions: Permissions | None = None
    mcp_server_names: list[str] = field(default_factory=list)
    command_names: list[str] = field(default_factory=list)
    base_dir: Path = field(default_factory=lambda: Path("."))


class SettingsStrategy(ABC):
    """Tool-specific hooks plugged into ``IDEAdapter``.

    Every hook defaults to doing nothing, so a strategy only overrides what
    its tool needs.
    """

    def update(self, settings: SettingsInput) -> list[MaterializedEntry]:
        """Return settings-file entries for the tool."""
        return []

    def extra_entries(self, ide: Ide, gen_ctx: GenerationContext) -> list[MaterializedEntry]:
        """Return entries appended after everything else."""
        return []

    def prepare_start(self, gen_ctx: GenerationContext) -> ExecProps:
        """Return launch tweaks for the tool."""
        return ExecProps()


def read_json_object(path: Path, label: str) -> dict[str, Any]:
    """Load an existing JSON object from ``path``; a missing file yields ``{}``."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise SettingsMergeError(f"failed to read existing {label}: {exc}") from exc

    if not raw.strip():
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise SettingsMergeError(f"failed to parse existing {label}: {exc}") from exc
    if not isinstance(payload, dict):
        raise SettingsMergeError(f"failed to parse existing {label}: expected a JSON object")
    return payload


def dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False)


def mcp_server_config(server: McpServer) -> dict[str, Any] | None:
    """Translate one MCP server into its JSON form, or ``None`` when unset."""
    if server.http is not None:
        return {"type": "http", "url": server.http.url}
    if server.stdio is not None:
        command = server.stdio.command
        args = list(server.stdio.args)
        parts = command.split()
        if parts and not args:
            command, args = parts[0], parts[1:]
        return {"type": "stdio", "command": command, "args": args, "env": {}}
    return None


def merge_mcp_servers(existing: dict[str, Any], servers: dict[str, McpServer]) -> dict[str, Any]:
    """Insert or replace ``servers`` under ``mcpServers``, keeping every other key."""
    current = existing.get("mcpServers")
    if current is None:
        current = {}
    if not isinstance(current, dict):
        raise SettingsMergeError("failed to parse existing mcp json: mcpServers must be an object")

    merged_servers = dict(current)
    for server_name, server in servers.items():
        config = mcp_server_config(server)
        if config is None:
            log_event(logger, logging.DEBUG, "adapter.mcp_server_skipped", server=server_name)
            continue
        merged_servers[server_name] = config

    merged = dict(existing)
    merged["mcpServers"] = merged_servers
    return merged


class IDEAdapter:
    """Materialize a tool-neutral ``Ide`` section into one tool's layout."""

    def __init__(
        self,
        commands_folder: str,
        mcp_servers_path: str | None = None,
        strategy: SettingsStrategy | None = None,
        collaborators: Collaborators | None = None,
        *,
        tool: str = "",
        executable: str = "",
        launch_args: list[str] | None = None,
    ) -> None:
        self.tool = tool
        self.executable = executable or tool
        self.launch_args = list(launch_args or [])
        self.commands_folder = commands_folder
        self.mcp_servers_path = mcp_servers_path
        self.strategy = strategy or SettingsStrategy()
        self._resolver = SourceResolver(collaborators)

    def materialize(self, ide: Ide | None, gen_ctx: GenerationContext) -> MaterializedResult:
        """Produce command files, settings, the MCP file, then strategy extras."""
        if ide is None:
            raise RecipeValidationError("ide cannot be nil")

        base_dir = Path(gen_ctx.workspace_path or ".")
        result = MaterializedResult(workspace_path=gen_ctx.workspace_path)
        result.entries.extend(self._materialize_commands(ide.command_entries, gen_ctx))

        settings = SettingsInput(
            permissions=ide.permissions,
            mcp_server_names=list(ide.mcp_servers),
            command_names=[command.name for command in ide.command_entries if command.name],
            base_dir=base_dir,
        )
        result.entries.extend(self.strategy.update(settings))
        result.entries.extend(self._materialize_mcp(ide.mcp, base_dir))
        result.entries.extend(self.strategy.extra_entries(ide, gen_ctx))

        log_event(
            logger,
            logging.DEBUG,
            "adapter.materialized",
            tool=self.tool,
            entries=len(result.entries),
        )
        return result

    def prepare_start(self, gen_ctx: GenerationContext) -> ExecProps:
        return self.strategy.prepare_start(gen_ctx)

    def _materialize_commands(
        self, commands: list[Command], gen_ctx: GenerationContext
    ) -> list[MaterializedEntry]:
        entries: list[MaterializedEntry] = []
        for command in commands:
            if not command.name:
                raise RecipeValidationError("command name cannot be empty")
            if command.from_ is None:
                raise RecipeValidationError(f"command {command.name} must have a 'from' source")
            try:
                content = self._resolver.resolve_text(command.from_, gen_ctx)
            except MaterializationError as exc:
                raise exc.wrap(f"failed to materialize command {command.name}") from exc
            entries.append(
                FileEntry(path=f"{self.commands_folder}/{command.name}.md", content=content)
            )
        return entries

    def _materialize_mcp(self, mcp: Mcp | None, base_dir: Path) -> list[MaterializedEntry]:
        if mcp is None or not self.mcp_servers_path:
            return []
        existing = read_json_object(base_dir / self.mcp_servers_path, "mcp json")
        merged = merge_mcp_servers(existing, mcp.servers)
        return [FileEntry(path=self.mcp_servers_path, content=dump_json(merged))]
