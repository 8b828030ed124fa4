"""Step executor interface."""

from __future__ import annotations

import abc
from typing import ClassVar, Optional

from pydantic import BaseModel

from ..persistence.models import StepName
from ..resolver import MigrationTarget
from ..utils.shell import CommandResult


class StepResult(BaseModel):
    """Outcome of one step attempt: ok, or failed with a reason."""

    ok: bool
    reason: Optional[str] = None

    @classmethod
    def success(cls) -> "StepResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "StepResult":
        return cls(ok=False, reason=reason or "unknown failure")


class StepExecutor(metaclass=abc.ABCMeta):
    """Performs the actual work of one migration step.

    Implementations must only report success after positively confirming
    completion; anything ambiguous is a failure.
    """

    step: ClassVar[StepName]

    @abc.abstractmethod
    def execute(self, target: MigrationTarget) -> StepResult:
        """Attempt the step for ``target`` and block until it finishes."""
        raise NotImplementedError


def completion_marker(step: StepName, target: MigrationTarget) -> str:
    """Token a remote script echoes as its very last action."""
    return f"DBSHUTTLE-{step.value.upper()}-OK:{target.unit_id}"


def confirm_completion(result: CommandResult, marker: str) -> StepResult:
    """Treat a remote script as done only if it exited 0 and printed ``marker``."""
    if not result.ok:
        return StepResult.failure(result.describe_failure())
    if marker not in result.stdout.splitlines():
        return StepResult.failure("completion could not be confirmed")
    return StepResult.success()
