"""Recipe orchestration: prefetch, context, IDE, persistence, and launch planning."""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field

from recipe2ws.adapters import IDEAdapter
from recipe2ws.collaborators import Collaborators
from recipe2ws.config import ExecutableRecipe, Recipe, StartConfig
from recipe2ws.context import GenerationContext
from recipe2ws.errors import MaterializationError, RecipeValidationError
from recipe2ws.logging_utils import log_event
from recipe2ws.materializer import ContextMaterializer
from recipe2ws.persistence import persist_materialized_result
from recipe2ws.prefetch import PrefetchProcessor
from recipe2ws.schemas import MaterializedResult
from recipe2ws.tools import get_ide_adapter
from recipe2ws.workspace import resolve_workspace

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class LaunchPlan:
    """How to start the target tool on a persisted workspace."""

    tool: str
    workspace: str
    executable: str
    args: list[str] = field(default_factory=list)

    @property
    def command_line(self) -> str:
        """Return a shell command that changes into the workspace and starts the tool."""
        return f"cd {shlex.quote(self.workspace)} && {shlex.join([self.executable, *self.args])}"


class RecipeMaterializer:
    """Materialize a ``Recipe`` for one tool adapter."""

    def __init__(self, adapter: IDEAdapter, collaborators: Collaborators | None = None) -> None:
        self.adapter = adapter
        self._prefetch = PrefetchProcessor(collaborators)
        self._context = ContextMaterializer(collaborators=collaborators)

    def materialize(self, recipe: Recipe | None, gen_ctx: GenerationContext) -> MaterializedResult:
        """Run prefetch, then context, then IDE, and concatenate the results."""
        if recipe is None:
            raise RecipeValidationError("recipe cannot be nil")

        if recipe.prefetch is not None:
            try:
                fetched = self._prefetch.process(recipe.prefetch, gen_ctx)
            except MaterializationError as exc:
                raise exc.wrap("failed to process prefetch") from exc
            gen_ctx.prefetched.update(fetched)

        result = MaterializedResult(workspace_path=gen_ctx.workspace_path)
        if recipe.context is not None:
            try:
                context_result = self._context.materialize(recipe.context, gen_ctx)
            except MaterializationError as exc:
                raise exc.wrap("failed to materialize context") from exc
            result.entries.extend(context_result.entries)

        if recipe.ide is not None:
            try:
                ide_result = self.adapter.materialize(recipe.ide, gen_ctx)
            except MaterializationError as exc:
                raise exc.wrap("failed to materialize IDE configuration") from exc
            result.entries.extend(ide_result.entries)

        return result


def start_prompt(start: StartConfig | None) -> str:
    """Return the default prompt for a start config: ``/<command>`` or the prompt text."""
    if start is None:
        return ""
    if start.command is not None:
        return f"/{start.command}"
    return start.prompt or ""


class RecipeRunner:
    """Materialize an executable recipe and plan the tool launch.

    ``materialize`` is cached; ``execute`` persists the cached result and
    returns the command line to start the tool. The tool is never spawned.
    """

    def __init__(
        self,
        executable_recipe: ExecutableRecipe,
        collaborators: Collaborators | None = None,
        *,
        workspace: str | None = None,
    ) -> None:
        self.executable_recipe = executable_recipe
        self._collaborators = collaborators
        self._workspace_override = workspace
        self._adapter: IDEAdapter | None = None
        self._materialized: MaterializedResult | None = None

    @property
    def ide_type(self) -> str:
        entry_point = self.executable_recipe.entry_point
        return entry_point.ide_type if entry_point is not None else ""

    def materialize(self, gen_ctx: GenerationContext) -> MaterializedResult:
        if self._materialized is not None:
            return self._materialized

        try:
            adapter = get_ide_adapter(self.ide_type, self._collaborators)
        except MaterializationError as exc:
            raise exc.wrap("failed to get IDE") from exc

        entry_point = self.executable_recipe.entry_point
        if self._workspace_override is not None:
            workspace = self._workspace_override
        else:
            try:
                workspace = resolve_workspace(entry_point.workspace if entry_point else None)
            except MaterializationError as exc:
                raise exc.wrap("failed to materialize workspace") from exc

        gen_ctx.workspace_path = workspace
        gen_ctx.ide = adapter.tool
        gen_ctx.recipe = self.executable_recipe
        log_event(
            logger,
            logging.INFO,
            "recipe.materialize_started",
            tool=adapter.tool,
            workspace=workspace or None,
        )

        materializer = RecipeMaterializer(adapter, self._collaborators)
        try:
            result = materializer.materialize(self.executable_recipe.recipe, gen_ctx)
        except MaterializationError as exc:
            raise exc.wrap("failed to materialize recipe") from exc
        result.workspace_path = workspace

        self._adapter = adapter
        self._materialized = result
        log_event(logger, logging.INFO, "recipe.materialized", entries=len(result.entries))
        return result

    def execute(self, gen_ctx: GenerationContext) -> LaunchPlan:
        if self._materialized is None or self._adapter is None:
            raise RecipeValidationError("recipe must be materialized first")

        root = self._materialized.workspace_path or "."
        try:
            persist_materialized_result(root, self._materialized)
        except MaterializationError as exc:
            raise exc.wrap("failed to persist materialized result") from exc

        props = self._adapter.prepare_start(gen_ctx)
        entry_point = self.executable_recipe.entry_point
        prompt_parts = [props.prompt_prefix]
        if not props.omit_default_prompt:
            prompt_parts.append(start_prompt(entry_point.start if entry_point else None))
        prompt = " ".join(part for part in prompt_parts if part)

        args = [*self._adapter.launch_args, *props.extra_args]
        if prompt:
            args.append(prompt)
        plan = LaunchPlan(
            tool=self._adapter.tool,
            workspace=root,
            executable=self._adapter.executable,
            args=args,
        )
        log_event(logger, logging.INFO, "recipe.launch_planned", tool=plan.tool, workspace=root)
        return plan
