"""Loading executable recipes from local files or GitHub recipe ids."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx
import yaml

from recipe2ws.config import ExecutableRecipe, parse_executable_recipe
from recipe2ws.context import CancellationToken
from recipe2ws.errors import RecipeValidationError, SourceFetchError
from recipe2ws.github import convert_to_raw_url, fetch_url
from recipe2ws.logging_utils import log_event

logger = logging.getLogger(__name__)

GLOBAL_RECIPES_URL = "https://github.com/opensdd/recipes/global"
RECIPE_EXTENSIONS = (".yaml", ".json")


def parse_recipe_document(text: str, source: str) -> dict[str, Any]:
    """Parse YAML (or JSON, which is valid YAML) into a mapping."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RecipeValidationError(f"failed to parse recipe {source}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise RecipeValidationError(f"recipe {source} must be a mapping at the top level")
    return data


def load_recipe_file(path: Path) -> ExecutableRecipe:
    """Load an executable recipe from a YAML or JSON file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SourceFetchError(f"failed to read recipe file {path}: {exc}") from exc
    return parse_executable_recipe(parse_recipe_document(text, str(path)))


def build_recipe_base_url(recipe_id: str) -> str:
    """Return the GitHub URL of a recipe id, without extension.

    ``<name>`` points at the shared recipes repository;
    ``<owner>/<repo>/<name>`` points at ``opensdd_recipes/`` in that repository.
    """
    value = recipe_id.strip()
    if not value:
        raise RecipeValidationError("recipe id cannot be empty")

    parts = value.split("/")
    if len(parts) == 1:
        return f"{GLOBAL_RECIPES_URL}/{parts[0]}/recipe"
    if len(parts) == 3:
        owner, repo, name = parts
        if not owner or not repo or not name:
            raise RecipeValidationError(f"invalid recipe id: {value}")
        return f"https://github.com/{owner}/{repo}/opensdd_recipes/{name}/recipe"
    raise RecipeValidationError(f"invalid recipe id format: {value}")


def fetch_recipe(
    recipe_id: str,
    *,
    cancellation: CancellationToken | None = None,
    client: httpx.Client | None = None,
) -> ExecutableRecipe:
    """Fetch a recipe by id, trying the YAML file first and then JSON."""
    base_url = build_recipe_base_url(recipe_id)

    last_error: SourceFetchError | None = None
    for extension in RECIPE_EXTENSIONS:
        url = base_url + extension
        try:
            content = fetch_url(
                convert_to_raw_url(url), cancellation=cancellation, client=client
            )
        except SourceFetchError as exc:
            last_error = exc
            log_event(logger, logging.DEBUG, "loader.candidate_missed", url=url)
            continue
        if content:
            log_event(logger, logging.INFO, "loader.recipe_fetched", recipe_id=recipe_id, url=url)
            return parse_executable_recipe(parse_recipe_document(content, url))

    if last_error is not None:
        raise last_error.wrap("failed to fetch recipe from GitHub") from last_error
    raise SourceFetchError("failed to fetch recipe from GitHub: unknown error")
