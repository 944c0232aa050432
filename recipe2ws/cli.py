"""Command line interface for materializing recipes into tool workspaces."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError

from recipe2ws import __version__
from recipe2ws.config import EntryPoint, ExecutableRecipe
from recipe2ws.context import GenerationContext
from recipe2ws.errors import MaterializationError
from recipe2ws.loader import fetch_recipe, load_recipe_file
from recipe2ws.logging_utils import configure_logging, run_scope
from recipe2ws.persistence import persist_materialized_result
from recipe2ws.recipe import RecipeRunner
from recipe2ws.schemas import DirectoryEntry, FileEntry, MaterializedResult
from recipe2ws.tools import SUPPORTED_TOOLS

app = typer.Typer(
    no_args_is_help=True,
    help="Materialize declarative recipes into AI coding tool workspaces.",
    add_completion=False,
)

_RECIPE_ARGUMENT = typer.Argument(
    None,
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
    help="Recipe file (YAML or JSON).",
)
_ID_OPTION = typer.Option(
    None,
    "--id",
    help="Recipe id to fetch from GitHub: <name> or <owner>/<repo>/<name>.",
)
_IDE_OPTION = typer.Option(None, "--ide", help="Override the recipe's target tool.")
_INPUT_OPTION = typer.Option(
    None,
    "--input",
    "-i",
    help="User input value as NAME=VALUE (repeatable).",
)
_ENV_OPTION = typer.Option(
    None,
    "--env",
    "-e",
    help="Environment override as NAME=VALUE, consulted before the process env (repeatable).",
)
_ROOT_OPTION = typer.Option(
    None,
    "--root",
    file_okay=False,
    dir_okay=True,
    resolve_path=True,
    help="Write into this directory instead of the recipe's workspace.",
)
_JSON_OPTION = typer.Option(False, "--json", help="Output JSON.")
_VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable debug logging.")


def _parse_pairs(values: list[str] | None, option: str) -> dict[str, str]:
    pairs: dict[str, str] = {}
    for raw in values or []:
        name, separator, value = raw.partition("=")
        if not separator or not name.strip():
            typer.echo(f"Invalid {option} value '{raw}': expected NAME=VALUE.", err=True)
            raise typer.Exit(code=1)
        pairs[name.strip()] = value
    return pairs


def _load_recipe(recipe: Path | None, recipe_id: str | None, ide: str | None) -> ExecutableRecipe:
    if (recipe is None) == (recipe_id is None):
        typer.echo("Provide exactly one of RECIPE or --id.", err=True)
        raise typer.Exit(code=1)

    try:
        loaded = load_recipe_file(recipe) if recipe is not None else fetch_recipe(recipe_id or "")
    except (MaterializationError, ValidationError) as exc:
        typer.echo(f"Failed to load recipe: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    if ide:
        entry_point = loaded.entry_point or EntryPoint()
        loaded = loaded.model_copy(
            update={"entry_point": entry_point.model_copy(update={"ide_type": ide})}
        )
    return loaded


def _entry_payload(entry: FileEntry | DirectoryEntry, *, include_content: bool) -> dict[str, Any]:
    if isinstance(entry, DirectoryEntry):
        return {"type": "directory", "path": entry.path}
    payload: dict[str, Any] = {"type": "file", "path": entry.path}
    if include_content:
        payload["content"] = entry.content
    return payload


def _print_result(
    result: MaterializedResult, root: str, *, json_output: bool, dry_run: bool
) -> None:
    if json_output:
        payload = {
            "root": root,
            "dry_run": dry_run,
            "entries": [
                _entry_payload(entry, include_content=dry_run) for entry in result.entries
            ],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    if not result.entries:
        typer.echo("Nothing to materialize.")
        return
    for entry in result.entries:
        kind = "dir " if isinstance(entry, DirectoryEntry) else "file"
        typer.echo(f"{kind}  {entry.path}")
    action = "Would write" if dry_run else "Wrote"
    typer.echo(f"{action} {len(result.entries)} entries under {root}.")


@app.command("materialize")
def materialize(
    recipe: Path | None = _RECIPE_ARGUMENT,
    recipe_id: str | None = _ID_OPTION,
    ide: str | None = _IDE_OPTION,
    inputs: list[str] | None = _INPUT_OPTION,
    env: list[str] | None = _ENV_OPTION,
    root: Path | None = _ROOT_OPTION,
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Resolve everything but write nothing (commands and clones still run).",
    ),
    json_output: bool = _JSON_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Resolve a recipe and write its files under the workspace."""
    configure_logging(verbose=verbose)
    executable = _load_recipe(recipe, recipe_id, ide)
    gen_ctx = GenerationContext(
        user_input=_parse_pairs(inputs, "--input"),
        env=_parse_pairs(env, "--env"),
    )
    runner = RecipeRunner(executable, workspace=str(root) if root is not None else None)

    with run_scope():
        try:
            result = runner.materialize(gen_ctx)
            target = result.workspace_path or "."
            if not dry_run:
                persist_materialized_result(target, result)
        except MaterializationError as exc:
            typer.echo(f"Materialization failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc

    _print_result(result, target, json_output=json_output, dry_run=dry_run)


@app.command("start")
def start(
    recipe: Path | None = _RECIPE_ARGUMENT,
    recipe_id: str | None = _ID_OPTION,
    ide: str | None = _IDE_OPTION,
    inputs: list[str] | None = _INPUT_OPTION,
    env: list[str] | None = _ENV_OPTION,
    root: Path | None = _ROOT_OPTION,
    json_output: bool = _JSON_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Materialize and persist a recipe, then print the command that starts the tool."""
    configure_logging(verbose=verbose)
    executable = _load_recipe(recipe, recipe_id, ide)
    gen_ctx = GenerationContext(
        user_input=_parse_pairs(inputs, "--input"),
        env=_parse_pairs(env, "--env"),
    )
    runner = RecipeRunner(executable, workspace=str(root) if root is not None else None)

    with run_scope():
        try:
            runner.materialize(gen_ctx)
            plan = runner.execute(gen_ctx)
        except MaterializationError as exc:
            typer.echo(f"Start failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc

    if json_output:
        payload = {
            "tool": plan.tool,
            "workspace": plan.workspace,
            "executable": plan.executable,
            "args": plan.args,
            "command_line": plan.command_line,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        return
    typer.echo(plan.command_line)


@app.command("tools")
def tools(json_output: bool = _JSON_OPTION) -> None:
    """List supported target tools."""
    if json_output:
        typer.echo(json.dumps(list(SUPPORTED_TOOLS)))
        return
    for tool in SUPPORTED_TOOLS:
        typer.echo(tool)


@app.command("version")
def version() -> None:
    """Print the installed version."""
    typer.echo(__version__)


def main() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
