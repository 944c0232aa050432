"""Configuration models for declarative recipe definitions."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import ClassVar, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class RecipeModel(BaseModel):
    """Base model for recipe documents: camelCase keys, no unknown fields."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


class UnionModel(RecipeModel):
    """A tagged union: at most one case field may be populated.

    An instance with no populated case is the explicit "unset" state. It
    parses successfully and is rejected when it is resolved.
    """

    union_cases: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def validate_single_case(self) -> Self:
        """Reject documents that populate more than one case."""
        populated = [name for name in self.union_cases if getattr(self, name) is not None]
        if len(populated) > 1:
            populated_list = ", ".join(populated)
            raise ValueError(f"only one source type may be set, got: {populated_list}")
        return self

    @property
    def kind(self) -> str | None:
        """Return the name of the populated case, or ``None`` when unset."""
        for name in self.union_cases:
            if getattr(self, name) is not None:
                return name
        return None


class Exec(RecipeModel):
    """An executable plus arguments, run without a shell."""

    cmd: str = ""
    args: list[str] = Field(default_factory=list)


class GitVersion(UnionModel):
    """Tag or commit pin for a GitHub reference."""

    union_cases: ClassVar[tuple[str, ...]] = ("tag", "commit")

    tag: str | None = None
    commit: str | None = None


class GitReference(RecipeModel):
    """A file on GitHub, as a ``github.com`` URL or any other fetchable URL."""

    path: str = ""
    version: GitVersion | None = None


class UserInputParameter(RecipeModel):
    name: str = ""
    description: str = ""
    optional: bool = False


class UserInputSource(RecipeModel):
    entries: list[UserInputParameter] = Field(default_factory=list)


class TimeRange(RecipeModel):
    from_: datetime | None = Field(default=None, alias="from")
    to: datetime | None = None


class IssuesFilter(RecipeModel):
    created_at: TimeRange | None = None
    updated_at: TimeRange | None = None


class GitRepository(RecipeModel):
    """A repository cloned into the workspace over HTTPS."""

    full_name: str = ""
    provider: str = ""
    auth_token_env_var: str | None = None


class JiraIssuesSource(RecipeModel):
    organization: str = ""
    projects: list[str] = Field(default_factory=list)
    filter: IssuesFilter | None = None
    auth_token_env_var: str | None = None


class LinearIssuesSource(RecipeModel):
    teams: list[str] = Field(default_factory=list)
    filter: IssuesFilter | None = None
    auth_token_env_var: str | None = None


class CombinedItem(UnionModel):
    """One part of a combined source; combined items cannot nest."""

    union_cases: ClassVar[tuple[str, ...]] = (
        "text",
        "cmd",
        "github",
        "prefetch_id",
        "user_input",
        "local_file",
    )

    text: str | None = None
    cmd: Exec | None = None
    github: GitReference | None = None
    prefetch_id: str | None = None
    user_input: UserInputSource | None = None
    local_file: str | None = None


class CombinedSource(RecipeModel):
    items: list[CombinedItem] = Field(default_factory=list)


class ContextFrom(UnionModel):
    """Source expression for one context entry."""

    union_cases: ClassVar[tuple[str, ...]] = (
        "text",
        "cmd",
        "github",
        "combined",
        "prefetch_id",
        "user_input",
        "local_file",
        "git_repo",
        "jira_issues",
        "linear_issues",
    )

    text: str | None = None
    cmd: Exec | None = None
    github: GitReference | None = None
    combined: CombinedSource | None = None
    prefetch_id: str | None = None
    user_input: UserInputSource | None = None
    local_file: str | None = None
    git_repo: GitRepository | None = None
    jira_issues: JiraIssuesSource | None = None
    linear_issues: LinearIssuesSource | None = None


class ContextFilter(RecipeModel):
    ide: list[str] = Field(default_factory=list)


class ContextEntry(RecipeModel):
    """A relative output path and the source that fills it."""

    path: str = ""
    from_: ContextFrom | None = Field(default=None, alias="from")
    filter: ContextFilter | None = None

    def visible_for(self, ide: str) -> bool:
        """Return ``False`` when the IDE filter excludes the active tool."""
        if self.filter is None or not self.filter.ide or not ide:
            return True
        return ide in self.filter.ide


class Context(RecipeModel):
    entries: list[ContextEntry] | None = None


class CommandFrom(UnionModel):
    """Source for a slash-command body."""

    union_cases: ClassVar[tuple[str, ...]] = ("text", "cmd", "github")

    text: str | None = None
    cmd: Exec | None = None
    github: GitReference | None = None


class Command(RecipeModel):
    name: str = ""
    from_: CommandFrom | None = Field(default=None, alias="from")


class Commands(RecipeModel):
    entries: list[Command] = Field(default_factory=list)


class OperationPermission(UnionModel):
    union_cases: ClassVar[tuple[str, ...]] = ("bash", "read", "write", "network")

    bash: str | None = None
    read: str | None = None
    write: str | None = None
    network: bool | None = None


class Permissions(RecipeModel):
    allow: list[OperationPermission] = Field(default_factory=list)
    deny: list[OperationPermission] = Field(default_factory=list)


class HttpServer(RecipeModel):
    url: str = ""


class StdioServer(RecipeModel):
    command: str = ""
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)


class McpServer(UnionModel):
    union_cases: ClassVar[tuple[str, ...]] = ("http", "stdio")

    http: HttpServer | None = None
    stdio: StdioServer | None = None


class Mcp(RecipeModel):
    servers: dict[str, McpServer] = Field(default_factory=dict)


class Ide(RecipeModel):
    """Tool-neutral IDE configuration."""

    commands: Commands | None = None
    permissions: Permissions | None = None
    mcp: Mcp | None = None

    @property
    def command_entries(self) -> list[Command]:
        """Return declared commands, or an empty list."""
        return self.commands.entries if self.commands is not None else []

    @property
    def mcp_servers(self) -> dict[str, McpServer]:
        """Return declared MCP servers, or an empty mapping."""
        return self.mcp.servers if self.mcp is not None else {}


class PrefetchEntry(UnionModel):
    union_cases: ClassVar[tuple[str, ...]] = ("cmd",)

    cmd: Exec | None = None


class Prefetch(RecipeModel):
    entries: list[PrefetchEntry] = Field(default_factory=list)


class Recipe(RecipeModel):
    """Context documents and IDE configuration to materialize."""

    prefetch: Prefetch | None = None
    context: Context | None = None
    ide: Ide | None = None


class UniqueConfig(RecipeModel):
    length: int = Field(default=0, alias="len")


class WorkspaceConfig(RecipeModel):
    enabled: bool = False
    path: str = ""
    absolute: bool = False
    unique: UniqueConfig | None = None


class StartConfig(UnionModel):
    union_cases: ClassVar[tuple[str, ...]] = ("command", "prompt")

    command: str | None = None
    prompt: str | None = None


class EntryPoint(RecipeModel):
    ide_type: str = ""
    workspace: WorkspaceConfig | None = None
    start: StartConfig | None = None


class ExecutableRecipe(RecipeModel):
    """Top-level document: a recipe plus how to start a tool on it."""

    recipe: Recipe | None = None
    entry_point: EntryPoint | None = None


def parse_executable_recipe(data: Mapping[str, object]) -> ExecutableRecipe:
    """Validate an executable recipe document."""
    return ExecutableRecipe.model_validate(data)


def parse_recipe(data: Mapping[str, object]) -> Recipe:
    """Validate a bare recipe document (no entry point)."""
    return Recipe.model_validate(data)
