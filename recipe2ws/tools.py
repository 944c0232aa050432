"""Per-tool settings strategies and the adapter factory."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

from recipe2ws.adapters import (
    IDEAdapter,
    SettingsInput,
    SettingsStrategy,
    dump_json,
    read_json_object,
)
from recipe2ws.collaborators import Collaborators
from recipe2ws.config import ExecutableRecipe, Ide, OperationPermission
from recipe2ws.context import GenerationContext
from recipe2ws.errors import RecipeValidationError, SettingsMergeError
from recipe2ws.logging_utils import log_event
from recipe2ws.schemas import ExecProps, FileEntry, MaterializedEntry

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
_TEMPLATES = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=False,
    keep_trailing_newline=True,
)

CLAUDE_SETTINGS_PATH = ".claude/settings.local.json"
RULES_FILENAME = "__commands_rules__.md"


def merge_unique(existing: Iterable[str], new: Iterable[str]) -> list[str]:
    """Concatenate two lists, keeping the first occurrence of each value."""
    seen: set[str] = set()
    merged: list[str] = []
    for value in [*existing, *new]:
        if value not in seen:
            seen.add(value)
            merged.append(value)
    return merged


def format_permission(permission: OperationPermission) -> str | None:
    """Render a permission in Claude's ``Tool(pattern)`` syntax."""
    if permission.bash is not None:
        return f"Bash({permission.bash})"
    if permission.read is not None:
        return f"Read({permission.read})"
    if permission.write is not None:
        return f"Write({permission.write})"
    # network has no Claude representation
    return None


def _string_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise SettingsMergeError(
            f"failed to parse existing settings json: {key} must be a list of strings"
        )
    return list(value)


def _formatted(permissions: Iterable[OperationPermission]) -> list[str]:
    return [text for text in (format_permission(item) for item in permissions) if text is not None]


def build_claude_settings(existing: dict[str, Any], settings: SettingsInput) -> dict[str, Any]:
    """Merge permissions, MCP servers, and commands into Claude's local settings."""
    permissions = existing.get("permissions")
    if permissions is None:
        permissions = {}
    if not isinstance(permissions, dict):
        raise SettingsMergeError(
            "failed to parse existing settings json: permissions must be an object"
        )

    new_allow: list[str] = []
    new_deny: list[str] = []
    if settings.permissions is not None:
        new_allow.extend(_formatted(settings.permissions.allow))
        new_deny.extend(_formatted(settings.permissions.deny))
    new_allow.extend(f"mcp__{server}" for server in settings.mcp_server_names)
    new_allow.extend(f"SlashCommand(/{command})" for command in settings.command_names)

    merged_permissions = dict(permissions)
    merged_permissions["allow"] = merge_unique(
        _string_list(permissions.get("allow"), "permissions.allow"), new_allow
    )
    merged_permissions["deny"] = merge_unique(
        _string_list(permissions.get("deny"), "permissions.deny"), new_deny
    )
    merged_permissions["ask"] = _string_list(permissions.get("ask"), "permissions.ask")
    merged_permissions["defaultMode"] = "acceptEdits"

    merged = dict(existing)
    merged["permissions"] = merged_permissions
    merged["enabledMcpjsonServers"] = merge_unique(
        _string_list(existing.get("enabledMcpjsonServers"), "enabledMcpjsonServers"),
        settings.mcp_server_names,
    )
    merged["enableAllProjectMcpServers"] = True
    return merged


class ClaudeSettings(SettingsStrategy):
    """Maintain ``.claude/settings.local.json``."""

    def update(self, settings: SettingsInput) -> list[MaterializedEntry]:
        existing = read_json_object(settings.base_dir / CLAUDE_SETTINGS_PATH, "settings json")
        merged = build_claude_settings(existing, settings)
        return [FileEntry(path=CLAUDE_SETTINGS_PATH, content=dump_json(merged))]


def render_commands_rules(commands_folder: str) -> str:
    """Render the instructions telling a tool how to run workspace commands."""
    template = _TEMPLATES.get_template("commands_rules.md")
    return template.render(commands_folder=commands_folder)


class CommandRulesStrategy(SettingsStrategy):
    """Add a rules document for tools without native slash-command support."""

    def __init__(self, settings_folder: str) -> None:
        self.settings_folder = settings_folder

    @property
    def rules_path(self) -> str:
        return f"{self.settings_folder}/{RULES_FILENAME}"

    def extra_entries(self, ide: Ide, gen_ctx: GenerationContext) -> list[MaterializedEntry]:
        if not ide.command_entries:
            return []
        content = render_commands_rules(f"{self.settings_folder}/commands")
        return [FileEntry(path=self.rules_path, content=content)]


def _recipe_ide(recipe: ExecutableRecipe | None) -> Ide | None:
    if recipe is None or recipe.recipe is None:
        return None
    return recipe.recipe.ide


def _network_allowed(ide: Ide | None) -> bool:
    if ide is None or ide.permissions is None:
        return False
    allowed = any(item.network for item in ide.permissions.allow)
    denied = any(item.network for item in ide.permissions.deny)
    return allowed and not denied


class CodexStrategy(CommandRulesStrategy):
    """Codex reads the rules file from its prompt and takes config flags."""

    def __init__(self) -> None:
        super().__init__(".codex")

    def prepare_start(self, gen_ctx: GenerationContext) -> ExecProps:
        prompt_prefix, omit_default = self._prompt(gen_ctx)
        return ExecProps(
            prompt_prefix=prompt_prefix,
            omit_default_prompt=omit_default,
            extra_args=self._extra_args(gen_ctx),
        )

    def _prompt(self, gen_ctx: GenerationContext) -> tuple[str, bool]:
        ide = _recipe_ide(gen_ctx.recipe)
        if ide is None or not ide.command_entries:
            return "", False

        prompt = f"Read and remember {self.rules_path}."
        entry_point = gen_ctx.recipe.entry_point if gen_ctx.recipe is not None else None
        start = entry_point.start if entry_point is not None else None
        if start is not None and start.command is not None:
            return f"{prompt} Then execute command /{start.command}", True
        return prompt, False

    def _extra_args(self, gen_ctx: GenerationContext) -> list[str]:
        args: list[str] = []
        recipe = gen_ctx.recipe
        entry_point = recipe.entry_point if recipe is not None else None
        workspace = entry_point.workspace if entry_point is not None else None
        if workspace is not None and workspace.enabled:
            args.extend(["--full-auto", "--config", 'sandbox_mode="danger-full-access"'])

        ide = _recipe_ide(recipe)
        if _network_allowed(ide):
            args.extend(["--config", "sandbox_workspace_write.network_access='true'"])

        servers = ide.mcp_servers if ide is not None else {}
        for server_name, server in servers.items():
            if server.http is not None:
                args.extend(["--config", f"mcp_servers.{server_name}.url='{server.http.url}'"])
            elif server.stdio is not None:
                args.extend(
                    ["--config", f'mcp_servers.{server_name}.command="{server.stdio.command}"']
                )
                if server.stdio.args:
                    encoded = json.dumps(server.stdio.args, separators=(",", ":"))
                    args.extend(["--config", f"mcp_servers.{server_name}.args={encoded}"])
        return args


class JunieStrategy(CommandRulesStrategy):
    """Junie starts without a default prompt."""

    def __init__(self) -> None:
        super().__init__(".junie")

    def prepare_start(self, gen_ctx: GenerationContext) -> ExecProps:
        return ExecProps(omit_default_prompt=True)


def _claude(collaborators: Collaborators | None) -> IDEAdapter:
    return IDEAdapter(
        ".claude/commands",
        ".mcp.json",
        ClaudeSettings(),
        collaborators,
        tool="claude",
    )


def _cursor_cli(collaborators: Collaborators | None) -> IDEAdapter:
    return IDEAdapter(
        ".cursor/commands",
        ".cursor/mcp.json",
        SettingsStrategy(),
        collaborators,
        tool="cursor-cli",
        executable="cursor-agent",
        launch_args=["-f"],
    )


def _codex(collaborators: Collaborators | None) -> IDEAdapter:
    return IDEAdapter(".codex/commands", None, CodexStrategy(), collaborators, tool="codex")


def _junie(collaborators: Collaborators | None) -> IDEAdapter:
    return IDEAdapter(
        ".junie/commands",
        ".junie/mcp/mcp.json",
        JunieStrategy(),
        collaborators,
        tool="junie",
    )


_ADAPTER_FACTORIES: dict[str, Callable[[Collaborators | None], IDEAdapter]] = {
    "claude": _claude,
    "cursor-cli": _cursor_cli,
    "codex": _codex,
    "junie": _junie,
}
SUPPORTED_TOOLS: tuple[str, ...] = tuple(_ADAPTER_FACTORIES)


def get_ide_adapter(ide_type: str, collaborators: Collaborators | None = None) -> IDEAdapter:
    """Return the adapter for ``ide_type`` (case-insensitive)."""
    if not ide_type:
        raise RecipeValidationError("ide type not provided")
    factory = _ADAPTER_FACTORIES.get(ide_type.lower())
    if factory is None:
        raise RecipeValidationError(f"unsupported IDE type: [{ide_type}]")
    log_event(logger, logging.DEBUG, "tools.adapter_selected", tool=ide_type.lower())
    return factory(collaborators)
