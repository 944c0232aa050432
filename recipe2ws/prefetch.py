"""Prefetch cache builder: runs prefetch commands and collects id/value pairs."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from recipe2ws.collaborators import Collaborators
from recipe2ws.config import Prefetch, PrefetchEntry
from recipe2ws.context import GenerationContext
from recipe2ws.errors import MaterializationError, RecipeValidationError, SourceFetchError
from recipe2ws.logging_utils import log_event
from recipe2ws.schemas import PrefetchResult

logger = logging.getLogger(__name__)


def parse_prefetch_output(output: str) -> dict[str, str]:
    """Parse a prefetch command's stdout into an id-to-value mapping.

    Later pairs overwrite earlier ones with the same id.
    """
    try:
        payload = PrefetchResult.model_validate_json(output)
    except ValidationError as exc:
        raise SourceFetchError(f"failed to parse prefetch output: {exc}") from exc
    return {item.id: item.data for item in payload.data or []}


class PrefetchProcessor:
    """Run every prefetch entry in document order."""

    def __init__(self, collaborators: Collaborators | None = None) -> None:
        self._collaborators = collaborators or Collaborators()

    def process(self, prefetch: Prefetch | None, gen_ctx: GenerationContext) -> dict[str, str]:
        values: dict[str, str] = {}
        if prefetch is None:
            return values

        for index, entry in enumerate(prefetch.entries):
            try:
                fetched = self._process_entry(entry, gen_ctx)
            except MaterializationError as exc:
                raise exc.wrap(f"failed to process entry at index {index}") from exc
            for key in fetched.keys() & values.keys():
                log_event(logger, logging.DEBUG, "prefetch.id_overwritten", prefetch_id=key)
            values.update(fetched)
            log_event(
                logger,
                logging.DEBUG,
                "prefetch.entry_completed",
                index=index,
                ids=len(fetched),
            )
        return values

    def _process_entry(self, entry: PrefetchEntry, gen_ctx: GenerationContext) -> dict[str, str]:
        if entry.kind == "cmd":
            output = self._collaborators.execute_command(
                entry.cmd, cancellation=gen_ctx.cancellation
            )
            return parse_prefetch_output(output)
        raise RecipeValidationError("unknown or unset prefetch entry type")
