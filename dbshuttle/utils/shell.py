from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Outcome of an external command."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def describe_failure(self) -> str:
        """Short human readable reason for a failed command."""
        if self.timed_out:
            return "timed out"
        detail = (self.stderr or self.stdout).strip().splitlines()
        tail = detail[-1] if detail else "no output"
        return f"exit code {self.returncode}: {tail}"


def run_command(
    args: Sequence[str],
    input: Optional[str] = None,
    timeout: Optional[float] = None,
    env: Optional[Mapping[str, str]] = None,
) -> CommandResult:
    """Run ``args`` to completion and capture its output.

    A missing executable is reported as exit code 127 and an expired
    ``timeout`` as ``timed_out``, so callers only ever inspect the result.
    Scripts carrying credentials should be passed through ``input`` rather
    than ``args`` to keep them out of the process table.
    """
    argv = list(args)
    logger.debug(f"Running: {' '.join(argv)}")
    try:
        completed = subprocess.run(
            argv,
            input=input,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=dict(env) if env is not None else None,
        )
    except FileNotFoundError as exc:
        return CommandResult(argv, 127, stderr=f"{argv[0]}: command not found ({exc})")
    except subprocess.TimeoutExpired as exc:
        logger.debug(f"Command timed out after {timeout}s: {argv[0]}")
        stdout = exc.stdout if isinstance(exc.stdout, str) else ""
        stderr = exc.stderr if isinstance(exc.stderr, str) else ""
        return CommandResult(argv, -1, stdout=stdout, stderr=stderr, timed_out=True)

    return CommandResult(argv, completed.returncode, completed.stdout, completed.stderr)
