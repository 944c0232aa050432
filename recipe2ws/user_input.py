"""Markdown rendering for ``userInput`` sources."""

from __future__ import annotations

from dataclasses import dataclass

from jinja2 import Environment, StrictUndefined

from recipe2ws.config import UserInputSource
from recipe2ws.errors import MissingReferenceError

_USER_INPUT_TEMPLATE = (
    "# User Input\n\n"
    "{% for param in params %}"
    "## {{ param.name }}\n\n"
    "**Description**: {{ param.description }}\n\n"
    "**Value**: {{ param.value }}\n\n"
    "{% if not loop.last %}---\n\n{% endif %}"
    "{% endfor %}"
)
_ENVIRONMENT = Environment(autoescape=False, undefined=StrictUndefined, keep_trailing_newline=True)
_TEMPLATE = _ENVIRONMENT.from_string(_USER_INPUT_TEMPLATE)


@dataclass(slots=True)
class _RenderedParam:
    name: str
    description: str
    value: str


def render_user_input(source: UserInputSource, values: dict[str, str]) -> str:
    """Render declared parameters and their supplied values as Markdown.

    Parameters without a name are skipped. Every required parameter missing
    from ``values`` is reported in a single error.
    """
    if not source.entries:
        return ""

    missing: list[str] = []
    params: list[_RenderedParam] = []
    for entry in source.entries:
        if not entry.name:
            continue
        value = values.get(entry.name)
        if value is None:
            if not entry.optional:
                missing.append(entry.name)
            value = ""
        params.append(_RenderedParam(name=entry.name, description=entry.description, value=value))

    if missing:
        raise MissingReferenceError(
            f"missing required user input parameters: {', '.join(missing)}"
        )
    return _TEMPLATE.render(params=params)
