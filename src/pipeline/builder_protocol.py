"""Builder capability for transformation steps.

A builder is the opaque processing step inside a transformation. It
receives a read-only source tree and an empty output directory and must
leave at least one file behind. Two concrete kinds exist: an external
executable and an in-process callable.
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence

from core.constants import (
    BUILDER_NAME_ENV_VAR,
    BUILDER_OUTPUT_ENV_VAR,
    BUILDER_PARAMS_ENV_VAR,
    BUILDER_SOURCE_ENV_VAR,
    BUILDER_STDERR_TAIL_CHARS,
)
from core.errors import CastBuilderError, CastError
from core.logging_config import get_logger

_LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class BuilderInvocation:
    """Everything a builder gets to see.

    Attributes:
        name: Transformation name token.
        source_root: Read-only view of the source content.
        output_root: Empty directory the builder must fill.
        work_dir: Scratch directory, also the working directory.
        params_json: Parameters serialized as JSON.
        params: Parameters as a mapping.
    """

    name: str
    source_root: Path
    output_root: Path
    work_dir: Path
    params_json: str
    params: Mapping[str, Any] = field(default_factory=dict)

    def environment(self) -> dict[str, str]:
        """Return the variables exported to external builders."""
        return {
            BUILDER_SOURCE_ENV_VAR: str(self.source_root),
            BUILDER_OUTPUT_ENV_VAR: str(self.output_root),
            BUILDER_NAME_ENV_VAR: self.name,
            BUILDER_PARAMS_ENV_VAR: self.params_json,
        }


class Builder(Protocol):
    """Processing step run by the transformation engine."""

    def run(self, invocation: BuilderInvocation) -> None:
        """Fill ``invocation.output_root``; raise ``CastError`` on failure."""


@dataclass(frozen=True)
class CommandBuilder:
    """Builder that runs an external executable.

    The command receives the invocation through ``CAST_SOURCE_DATA``,
    ``CAST_OUTPUT``, ``CAST_TRANSFORM_NAME`` and ``CAST_TRANSFORM_PARAMS``.
    Arguments are passed as a list and never interpolated into a shell.

    Attributes:
        command: Executable and arguments.
        env: Extra environment variables for the process.
    """

    command: Sequence[str]
    env: Mapping[str, str] = field(default_factory=dict)

    def run(self, invocation: BuilderInvocation) -> None:
        """Run the command to completion.

        Raises:
            CastBuilderError: If the executable is missing or exits non-zero.
        """
        run_command(
            self.command,
            invocation.name,
            cwd=invocation.work_dir,
            env={**self.env, **invocation.environment()},
        )


@dataclass(frozen=True)
class FunctionBuilder:
    """Builder that calls a Python function in-process.

    Cast errors raised by the function propagate unchanged; any other
    exception is reported as a builder failure.

    Attributes:
        function: Callable receiving the invocation.
    """

    function: Callable[[BuilderInvocation], None]

    def run(self, invocation: BuilderInvocation) -> None:
        """Call the function.

        Raises:
            CastError: Whatever Cast error the function raised.
            CastBuilderError: For any other exception.
        """
        try:
            self.function(invocation)
        except CastError:
            raise
        except Exception as error:
            raise CastBuilderError(
                f"Builder for '{invocation.name}' raised {type(error).__name__}: {error}. "
                "Fix the builder function and rerun the transformation."
            ) from error


def run_command(
    command: Sequence[str],
    label: str,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run an executable and fail loudly on a non-zero exit.

    Args:
        command: Executable and arguments, never passed through a shell.
        label: Transformation name used in messages.
        cwd: Working directory.
        env: Variables added to the inherited environment.

    Returns:
        Completed process with captured text output.

    Raises:
        CastBuilderError: If the command is empty, cannot start, or fails.
    """
    if not command:
        raise CastBuilderError(
            f"Builder for '{label}' has an empty command. "
            "Provide the executable and its arguments."
        )
    try:
        completed = subprocess.run(
            list(command),
            cwd=cwd,
            env={**os.environ, **(env or {})},
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as error:
        raise CastBuilderError(
            f"Builder for '{label}' could not start {command[0]!r}: "
            f"{error}. Install the executable or fix the command path."
        ) from error
    if completed.returncode != 0:
        stderr_tail = (completed.stderr or "")[-BUILDER_STDERR_TAIL_CHARS:]
        raise CastBuilderError(
            f"Builder for '{label}' exited with status {completed.returncode} running "
            f"{command[0]!r}: {stderr_tail.strip() or 'no error output'}. "
            "Fix the command and rerun the transformation.",
            exit_code=completed.returncode,
            stderr=completed.stderr,
        )
    _LOGGER.debug(
        "builder_command_completed",
        name=label,
        command=list(command),
        stdout_bytes=len(completed.stdout or ""),
    )
    return completed
