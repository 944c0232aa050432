"""External command execution used by command sources and prefetch entries."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from time import monotonic

from recipe2ws.config import Exec
from recipe2ws.context import CancellationToken
from recipe2ws.errors import OperationCancelledError, RecipeValidationError, SourceFetchError
from recipe2ws.logging_utils import log_event

logger = logging.getLogger(__name__)

ALLOWED_COMMANDS_ENV = "RECIPE2WS_ALLOWED_COMMANDS"
COMMAND_TIMEOUT_ENV = "RECIPE2WS_COMMAND_TIMEOUT"
_POLL_INTERVAL_SECONDS = 0.1


@dataclass(slots=True)
class ProcessResult:
    """Exit status and combined stdout/stderr of a finished process."""

    returncode: int
    output: str


def default_allowed_commands() -> list[str]:
    """Return the executable allow-list; empty means any executable may run."""
    raw = os.environ.get(ALLOWED_COMMANDS_ENV)
    if raw is None:
        return []
    return [value.strip() for value in raw.split(",") if value.strip()]


def default_command_timeout() -> float | None:
    """Return the per-command timeout in seconds, if configured."""
    raw = os.environ.get(COMMAND_TIMEOUT_ENV)
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s value %r", COMMAND_TIMEOUT_ENV, raw)
        return None
    return value if value > 0 else None


def run_process(
    command: list[str],
    *,
    cancellation: CancellationToken | None = None,
    timeout_seconds: float | None = None,
) -> ProcessResult:
    """Run ``command`` to completion, polling ``cancellation`` while it runs."""
    token = cancellation or CancellationToken()
    label = command[0]
    token.raise_if_cancelled(f"command {label}")

    deadline = None if timeout_seconds is None else monotonic() + timeout_seconds
    try:
        proc = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
    except OSError as exc:
        raise SourceFetchError(f"failed to start command {label}: {exc}") from exc

    with proc:
        while True:
            try:
                output, _ = proc.communicate(timeout=_POLL_INTERVAL_SECONDS)
                break
            except subprocess.TimeoutExpired:
                if token.cancelled:
                    proc.kill()
                    proc.communicate()
                    raise OperationCancelledError(f"command {label} cancelled") from None
                if deadline is not None and monotonic() >= deadline:
                    proc.kill()
                    proc.communicate()
                    raise SourceFetchError(
                        f"command {label} timed out after {timeout_seconds}s"
                    ) from None
    return ProcessResult(
        returncode=proc.returncode,
        output=(output or b"").decode("utf-8", errors="replace"),
    )


def execute_command(
    exec_config: Exec,
    *,
    cancellation: CancellationToken | None = None,
    allowed_commands: list[str] | None = None,
    timeout_seconds: float | None = None,
) -> str:
    """Run an ``Exec`` and return its combined stdout/stderr output."""
    cmd = exec_config.cmd
    if not cmd:
        raise RecipeValidationError("command cannot be empty")

    allowed = default_allowed_commands() if allowed_commands is None else allowed_commands
    if allowed and cmd not in allowed:
        raise RecipeValidationError(f"command [{cmd}] is not allowed")

    timeout = default_command_timeout() if timeout_seconds is None else timeout_seconds
    log_event(logger, logging.DEBUG, "command.started", cmd=cmd, arg_count=len(exec_config.args))
    result = run_process(
        [cmd, *exec_config.args],
        cancellation=cancellation,
        timeout_seconds=timeout,
    )
    if result.returncode != 0:
        log_event(
            logger,
            logging.WARNING,
            "command.failed",
            cmd=cmd,
            exit_code=result.returncode,
        )
        raise SourceFetchError(
            f"command execution failed: exit status {result.returncode} "
            f"(output: {result.output})"
        )
    log_event(logger, logging.DEBUG, "command.completed", cmd=cmd, output_chars=len(result.output))
    return result.output
