"""Workflow engine: runs dump, upload and restore in order, resuming from state."""

from __future__ import annotations

import logging
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from .exceptions import ExecutorFailure, SecretError, ShuttleError, StoreError
from .executors.base import StepExecutor, StepResult
from .persistence.models import STEP_ORDER, StepName, StepStatus
from .persistence.repository import StateStore
from .resolver import MigrationTarget

logger = logging.getLogger(__name__)


class RunReport(BaseModel):
    """What happened to one unit during a single engine run."""

    unit_id: str
    attempted: list[StepName] = Field(default_factory=list)
    skipped: list[StepName] = Field(default_factory=list)
    failed_step: Optional[StepName] = None
    reason: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.failed_step is None


class WorkflowEngine:
    """Drives one migration unit through ``STEP_ORDER``.

    A step already recorded as ``success`` is never executed again. Any
    other step runs only once all of its predecessors are ``success`` in the
    store, and its outcome is persisted before the engine moves on or
    reports a failure.
    """

    def __init__(self, store: StateStore, executors: Mapping[StepName, StepExecutor]) -> None:
        missing = [step.value for step in STEP_ORDER if step not in executors]
        if missing:
            raise ValueError(f"No executor configured for step(s): {', '.join(missing)}")
        self.store = store
        self.executors = dict(executors)

    def plan(self, unit_id: str) -> list[StepName]:
        """Steps a run would attempt, in order. Never writes to the store."""
        unit = self.store.get(unit_id)
        if unit is None:
            return list(STEP_ORDER)
        return [step for step in STEP_ORDER if unit.status_of(step) is not StepStatus.SUCCESS]

    def run(self, target: MigrationTarget) -> RunReport:
        """Run every outstanding step for ``target``.

        Raises ``ExecutorFailure`` after the failed step has been recorded as
        ``failed``; later steps are not attempted. ``StoreError`` propagates
        immediately.
        """
        unit_id = target.unit_id
        self.store.ensure(unit_id)
        report = RunReport(unit_id=unit_id)

        for position, step in enumerate(STEP_ORDER):
            status = self.store.get_step_status(unit_id, step)
            if status is StepStatus.SUCCESS:
                logger.info(f"{step.value.capitalize()} step already completed for {unit_id}")
                report.skipped.append(step)
                continue

            self._check_predecessors(unit_id, STEP_ORDER[:position])
            if status is StepStatus.FAILED:
                logger.info(f"Re-attempting {step.value} for {unit_id} after a previous failure")

            report.attempted.append(step)
            result = self._attempt(step, target)
            if result.ok:
                self.store.set_step(unit_id, step, StepStatus.SUCCESS)
                continue

            self.store.set_step(unit_id, step, StepStatus.FAILED)
            report.failed_step = step
            report.reason = result.reason
            logger.error(f"Step {step.value} failed for {unit_id}: {result.reason}")
            raise ExecutorFailure(unit_id, step.value, result.reason or "unknown failure")

        logger.info(f"All steps completed for {unit_id}")
        return report

    # ------------------------------------------------------------------
    def _attempt(self, step: StepName, target: MigrationTarget) -> StepResult:
        executor = self.executors[step]
        logger.debug(f"Invoking {type(executor).__name__} for {target.unit_id}")
        try:
            return executor.execute(target)
        except StoreError:
            raise
        except SecretError:
            self.store.set_step(target.unit_id, step, StepStatus.FAILED)
            raise
        except ShuttleError as exc:
            return StepResult.failure(str(exc))
        except Exception as exc:
            logger.exception(f"Executor for {step.value} raised unexpectedly")
            return StepResult.failure(f"{type(exc).__name__}: {exc}")

    def _check_predecessors(self, unit_id: str, predecessors: tuple[StepName, ...]) -> None:
        for previous in predecessors:
            status = self.store.get_step_status(unit_id, previous)
            if status is not StepStatus.SUCCESS:
                raise StoreError(
                    f"State for {unit_id} reports {previous.value} as {status.value} "
                    "after it was recorded as success"
                )
