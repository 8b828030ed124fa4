"""Invocation controller: one migration unit per process invocation."""

from __future__ import annotations

import contextlib
import logging
from typing import Callable, Iterable, Optional, Protocol

from pydantic import BaseModel, Field

from .engine import RunReport, WorkflowEngine
from .exceptions import ResourceError
from .locking import UnitLock
from .persistence.models import StepName
from .persistence.repository import StateStore
from .resolver import EntityResolver, MigrationTarget

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


class SharedResource(Protocol):
    """Infrastructure shared across units, torn down only on request."""

    def describe(self) -> str: ...

    def exists(self) -> bool: ...

    def teardown(self) -> None: ...


class InvocationOutcome(BaseModel):
    """Summary of one invocation, used by the CLI to report and pick an exit code."""

    unit_id: str
    dry_run: bool = False
    retry: bool = False
    plan: list[StepName] = Field(default_factory=list)
    report: Optional[RunReport] = None
    torn_down: bool = False

    @property
    def succeeded(self) -> bool:
        return self.dry_run or (self.report is not None and self.report.succeeded)


class InvocationController:
    """Resolve the unit, drive the engine and offer teardown of shared resources.

    ``confirm`` is asked before any shared resource is deleted; it is never
    called unless the whole run succeeded.
    """

    def __init__(
        self,
        store: StateStore,
        engine: WorkflowEngine,
        resolver: EntityResolver,
        confirm: Confirm,
        shared_resource: Optional[SharedResource] = None,
        lock_file: Optional[str] = None,
    ) -> None:
        self.store = store
        self.engine = engine
        self.resolver = resolver
        self.confirm = confirm
        self.shared_resource = shared_resource
        self.lock_file = lock_file

    def run(
        self,
        label: Optional[str],
        *,
        dry_run: bool = False,
        retry: bool = False,
        candidates: Optional[Iterable[str]] = None,
    ) -> InvocationOutcome:
        target = self.resolver.resolve(label, candidates)
        logger.info(f"Selected database: {target.database}")
        outcome = InvocationOutcome(unit_id=target.unit_id, dry_run=dry_run, retry=retry)

        if dry_run:
            self._warn_if_unknown(target.unit_id, retry)
            outcome.plan = self.engine.plan(target.unit_id)
            logger.info("DRY RUN mode enabled, no actual operations will be performed.")
            return outcome

        with self._lock(target):
            self._initialize(target.unit_id, retry)
            outcome.report = self.engine.run(target)

        logger.info(f"Migration of {target.unit_id} completed successfully!")
        outcome.torn_down = self._offer_teardown()
        return outcome

    # ------------------------------------------------------------------
    def _lock(self, target: MigrationTarget):
        if self.lock_file is None:
            return contextlib.nullcontext()
        return UnitLock(self.lock_file, target.unit_id)

    def _warn_if_unknown(self, unit_id: str, retry: bool) -> bool:
        if self.store.get(unit_id) is not None:
            return False
        if retry:
            logger.warning(f"No previous state found for {unit_id}, proceeding with new migration.")
        return True

    def _initialize(self, unit_id: str, retry: bool) -> None:
        if retry:
            logger.info(f"Retry mode enabled, checking previous state for {unit_id}...")
        self._warn_if_unknown(unit_id, retry)
        self.store.ensure(unit_id)

    def _offer_teardown(self) -> bool:
        resource = self.shared_resource
        if resource is None or not resource.exists():
            return False
        prompt = (
            f"Do you want to delete the {resource.describe()}? "
            "This will prevent restoring additional databases."
        )
        if not self.confirm(prompt):
            logger.warning(
                f"The {resource.describe()} was not deleted. "
                "Remember to delete it manually when finished."
            )
            return False
        try:
            resource.teardown()
        except ResourceError as exc:
            logger.error(f"Cleanup failed: {exc}")
            return False
        logger.info("Cleanup completed.")
        return True
