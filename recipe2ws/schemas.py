"""Result records produced by materialization and consumed by persistence."""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict


@dataclass(slots=True, frozen=True)
class FileEntry:
    """A file to write at ``path`` (relative to the workspace root)."""

    path: str
    content: str


@dataclass(slots=True, frozen=True)
class DirectoryEntry:
    """A directory that must exist at ``path``, e.g. a cloned repository."""

    path: str


type MaterializedEntry = FileEntry | DirectoryEntry


@dataclass(slots=True)
class MaterializedResult:
    """Ordered file/directory records, in document order."""

    entries: list[MaterializedEntry] = field(default_factory=list)
    workspace_path: str = ""

    def files(self) -> dict[str, str]:
        """Return file contents keyed by path."""
        return {entry.path: entry.content for entry in self.entries if isinstance(entry, FileEntry)}


@dataclass(slots=True)
class ExecProps:
    """Tool-specific launch tweaks computed by an IDE adapter."""

    prompt_prefix: str = ""
    omit_default_prompt: bool = False
    extra_args: list[str] = field(default_factory=list)


class FetchedData(BaseModel):
    """One id/value pair emitted by a prefetch command."""

    model_config = ConfigDict(extra="ignore")

    id: str = ""
    data: str = ""


class PrefetchResult(BaseModel):
    """Payload printed on stdout by a prefetch command."""

    model_config = ConfigDict(extra="ignore")

    data: list[FetchedData] | None = None
