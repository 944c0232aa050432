"""Context materializer: turns context entries into result records."""

from __future__ import annotations

import logging

from recipe2ws.collaborators import Collaborators
from recipe2ws.config import Context, ContextEntry
from recipe2ws.context import GenerationContext
from recipe2ws.errors import MaterializationError, RecipeValidationError
from recipe2ws.logging_utils import log_event
from recipe2ws.resolver import SourceResolver
from recipe2ws.schemas import MaterializedEntry, MaterializedResult

logger = logging.getLogger(__name__)


class ContextMaterializer:
    """Resolve context entries in document order, failing on the first error."""

    def __init__(
        self,
        resolver: SourceResolver | None = None,
        collaborators: Collaborators | None = None,
    ) -> None:
        self._resolver = resolver or SourceResolver(collaborators)

    def materialize(
        self, context: Context | None, gen_ctx: GenerationContext
    ) -> MaterializedResult:
        if context is None:
            raise RecipeValidationError("context cannot be nil")

        result = MaterializedResult(workspace_path=gen_ctx.workspace_path)
        for entry in context.entries or []:
            if not entry.visible_for(gen_ctx.ide):
                log_event(
                    logger,
                    logging.DEBUG,
                    "context.entry_skipped",
                    path=entry.path,
                    ide=gen_ctx.ide,
                )
                continue
            try:
                result.entries.extend(self._materialize_entry(entry, gen_ctx))
            except MaterializationError as exc:
                raise exc.wrap(f"failed to materialize entry for path {entry.path}") from exc

        log_event(logger, logging.DEBUG, "context.materialized", entries=len(result.entries))
        return result

    def _materialize_entry(
        self, entry: ContextEntry, gen_ctx: GenerationContext
    ) -> list[MaterializedEntry]:
        gen_ctx.cancellation.raise_if_cancelled("context materialization")
        if not entry.path:
            raise RecipeValidationError("entry path cannot be empty")
        if entry.from_ is None:
            raise RecipeValidationError("entry must have a 'from' source")
        return self._resolver.resolve_entry(entry.path, entry.from_, gen_ctx)
