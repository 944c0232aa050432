"""Evaluation of source expressions into file content or clone side effects."""

from __future__ import annotations

import logging
from pathlib import Path

from recipe2ws.collaborators import Collaborators
from recipe2ws.config import (
    CombinedItem,
    CombinedSource,
    CommandFrom,
    ContextFrom,
    GitRepository,
)
from recipe2ws.context import GenerationContext
from recipe2ws.errors import (
    MaterializationError,
    MissingReferenceError,
    RecipeValidationError,
    SourceFetchError,
)
from recipe2ws.issues import IssuesResult
from recipe2ws.logging_utils import log_event
from recipe2ws.persistence import resolve_within_root
from recipe2ws.schemas import DirectoryEntry, FileEntry, MaterializedEntry
from recipe2ws.user_input import render_user_input

logger = logging.getLogger(__name__)

type TextSource = ContextFrom | CombinedItem | CommandFrom

_NON_TEXT_KINDS = frozenset({"git_repo", "jira_issues", "linear_issues"})


def read_local_file(raw_path: str) -> str:
    """Read a local file verbatim, keeping its line endings."""
    path = raw_path.strip()
    if not path:
        raise RecipeValidationError("local file path cannot be empty")
    try:
        return Path(path).read_bytes().decode("utf-8", errors="replace")
    except OSError as exc:
        raise SourceFetchError(f"failed to read local file {path}: {exc}") from exc


def expand_issues(path: str, result: IssuesResult) -> list[MaterializedEntry]:
    """Lay out an issue export as ``<path>/summary.json`` plus ``<path>/issues/<id>.json``."""
    base = path.rstrip("/")
    entries: list[MaterializedEntry] = [
        FileEntry(path=f"{base}/summary.json", content=result.summary_json())
    ]
    for item in result.summary:
        content = result.issues.get(item.id)
        if content is None:
            continue
        entries.append(FileEntry(path=f"{base}/issues/{item.id}.json", content=content))
    return entries


class SourceResolver:
    """Resolve one source expression against a ``GenerationContext``."""

    def __init__(self, collaborators: Collaborators | None = None) -> None:
        self._collaborators = collaborators or Collaborators()

    def resolve_entry(
        self,
        path: str,
        source: ContextFrom,
        gen_ctx: GenerationContext,
    ) -> list[MaterializedEntry]:
        """Resolve a context entry's source into result records.

        Text-valued sources produce one ``FileEntry``. ``gitRepo`` clones and
        produces a ``DirectoryEntry``; issue trackers expand into several files.
        """
        kind = source.kind
        if kind == "git_repo":
            assert source.git_repo is not None
            return [self._clone(path, source.git_repo, gen_ctx)]
        if kind == "jira_issues":
            assert source.jira_issues is not None
            token = self._token(source.jira_issues.auth_token_env_var, gen_ctx)
            result = self._collaborators.fetch_jira_issues(
                source.jira_issues, token, cancellation=gen_ctx.cancellation
            )
            return expand_issues(path, result)
        if kind == "linear_issues":
            assert source.linear_issues is not None
            token = self._token(source.linear_issues.auth_token_env_var, gen_ctx)
            result = self._collaborators.fetch_linear_issues(
                source.linear_issues, token, cancellation=gen_ctx.cancellation
            )
            return expand_issues(path, result)

        content = self.resolve_text(source, gen_ctx)
        log_event(logger, logging.DEBUG, "resolver.source_resolved", path=path, kind=kind)
        return [FileEntry(path=path, content=content)]

    def resolve_text(self, source: TextSource, gen_ctx: GenerationContext) -> str:
        """Resolve a string-valued source expression."""
        kind = source.kind
        if kind == "text":
            return source.text or ""
        if kind == "cmd":
            return self._collaborators.execute_command(
                source.cmd, cancellation=gen_ctx.cancellation
            )
        if kind == "github":
            return self._collaborators.fetch_remote_file(
                source.github, cancellation=gen_ctx.cancellation
            )
        if kind == "combined":
            assert isinstance(source, ContextFrom) and source.combined is not None
            return self._resolve_combined(source.combined, gen_ctx)
        if kind == "prefetch_id":
            assert not isinstance(source, CommandFrom)
            return self._lookup_prefetched(source.prefetch_id or "", gen_ctx)
        if kind == "user_input":
            assert not isinstance(source, CommandFrom) and source.user_input is not None
            return render_user_input(source.user_input, gen_ctx.user_input)
        if kind == "local_file":
            assert not isinstance(source, CommandFrom)
            return read_local_file(source.local_file or "")
        if kind in _NON_TEXT_KINDS:
            raise RecipeValidationError(f"source type {kind} cannot be used as text content")
        raise RecipeValidationError("unknown or unset source type")

    def _resolve_combined(self, combined: CombinedSource, gen_ctx: GenerationContext) -> str:
        parts: list[str] = []
        for index, item in enumerate(combined.items):
            try:
                parts.append(self.resolve_text(item, gen_ctx))
            except MaterializationError as exc:
                raise exc.wrap(f"failed to fetch combined item {index}") from exc
        return "".join(parts)

    @staticmethod
    def _lookup_prefetched(prefetch_id: str, gen_ctx: GenerationContext) -> str:
        if prefetch_id not in gen_ctx.prefetched:
            raise MissingReferenceError(f"prefetch id [{prefetch_id}] not found")
        return gen_ctx.prefetched[prefetch_id]

    @staticmethod
    def _token(env_var: str | None, gen_ctx: GenerationContext) -> str | None:
        if not env_var:
            return None
        return gen_ctx.getenv(env_var) or None

    def _clone(
        self,
        path: str,
        repo: GitRepository,
        gen_ctx: GenerationContext,
    ) -> DirectoryEntry:
        root = gen_ctx.workspace_path or "."
        destination = resolve_within_root(root, path)
        token = self._token(repo.auth_token_env_var, gen_ctx)
        log_event(
            logger,
            logging.DEBUG,
            "resolver.git_repo_materializing",
            path=path,
            destination=str(destination),
        )
        try:
            self._collaborators.clone_repository(
                repo,
                destination,
                token=token,
                cancellation=gen_ctx.cancellation,
            )
        except MaterializationError as exc:
            raise exc.wrap("failed to clone git repository") from exc
        return DirectoryEntry(path=path)
