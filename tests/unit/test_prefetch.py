"""Unit tests for the prefetch cache builder."""

from __future__ import annotations

import json

import pytest

from recipe2ws.collaborators import Collaborators
from recipe2ws.config import Exec, Prefetch
from recipe2ws.context import GenerationContext
from recipe2ws.errors import RecipeValidationError, SourceFetchError
from recipe2ws.prefetch import PrefetchProcessor, parse_prefetch_output


def _prefetch(*commands: str) -> Prefetch:
    return Prefetch.model_validate({"entries": [{"cmd": {"cmd": name}} for name in commands]})


def _processor(outputs: dict[str, str], calls: list[str] | None = None) -> PrefetchProcessor:
    def _execute(exec_config: Exec, *, cancellation: object) -> str:
        if calls is not None:
            calls.append(exec_config.cmd)
        return outputs[exec_config.cmd]

    return PrefetchProcessor(Collaborators(execute_command=_execute))


def test_entries_run_in_order_and_last_write_wins(gen_ctx: GenerationContext) -> None:
    calls: list[str] = []
    outputs = {
        "first": json.dumps({"data": [{"id": "a", "data": "1"}, {"id": "b", "data": "2"}]}),
        "second": json.dumps({"data": [{"id": "a", "data": "3"}]}),
    }

    values = _processor(outputs, calls).process(_prefetch("first", "second"), gen_ctx)

    assert calls == ["first", "second"]
    assert values == {"a": "3", "b": "2"}


def test_no_entries_yield_empty_map(gen_ctx: GenerationContext) -> None:
    assert PrefetchProcessor().process(Prefetch(), gen_ctx) == {}
    assert PrefetchProcessor().process(None, gen_ctx) == {}


def test_invalid_json_names_the_entry_index(gen_ctx: GenerationContext) -> None:
    outputs = {"ok": json.dumps({"data": []}), "bad": "not json"}

    with pytest.raises(SourceFetchError, match="^failed to process entry at index 1: "):
        _processor(outputs).process(_prefetch("ok", "bad"), gen_ctx)


def test_unset_entry_is_rejected(gen_ctx: GenerationContext) -> None:
    prefetch = Prefetch.model_validate({"entries": [{}]})

    with pytest.raises(RecipeValidationError, match="unknown or unset prefetch entry type"):
        PrefetchProcessor().process(prefetch, gen_ctx)


def test_payload_without_data_contributes_nothing() -> None:
    assert parse_prefetch_output('{"other": 1}') == {}
    assert parse_prefetch_output('{"data": null}') == {}


def test_unknown_keys_in_payload_are_ignored() -> None:
    output = json.dumps({"data": [{"id": "x", "data": "y", "source": "cli"}], "version": 2})

    assert parse_prefetch_output(output) == {"x": "y"}
