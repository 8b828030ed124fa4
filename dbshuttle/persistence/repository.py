"""State store abstraction for migration progress."""

from __future__ import annotations

import abc
import logging
from typing import Optional

from ..exceptions import UnitNotFound
from .models import MigrationUnit, StateDocument, StepName, StepStatus, utcnow

logger = logging.getLogger(__name__)


class StateStore(metaclass=abc.ABCMeta):
    """Durable mapping from unit id to per-step migration status.

    Backends only implement whole-document ``load`` and ``_write``. Every
    mutation below is a read-modify-write of the full document, and
    ``_write`` must not return until the document is durably stored.
    """

    @abc.abstractmethod
    def load(self) -> StateDocument:
        """Return the persisted document, or an empty one if none exists."""
        raise NotImplementedError

    @abc.abstractmethod
    def _write(self, document: StateDocument) -> None:
        """Persist the whole document, raising ``StoreError`` on failure."""
        raise NotImplementedError

    # ------------------------------------------------------------------
    def get(self, unit_id: str) -> Optional[MigrationUnit]:
        """Return the unit's record, or ``None`` if it was never seen."""
        return self.load().find(unit_id)

    def ensure(self, unit_id: str) -> MigrationUnit:
        """Create an all-pending record for ``unit_id`` unless one exists."""
        document = self.load()
        existing = document.find(unit_id)
        if existing is not None:
            return existing

        logger.info(f"Adding database {unit_id} to state store")
        unit = MigrationUnit(name=unit_id, last_updated=utcnow())
        document.databases.append(unit)
        self._write(document)
        return unit

    def set_step(self, unit_id: str, step: StepName, status: StepStatus) -> MigrationUnit:
        """Record ``status`` for ``step`` and bump ``last_updated`` together."""
        step = StepName(step)
        status = StepStatus(status)
        document = self.load()
        unit = document.find(unit_id)
        if unit is None:
            raise UnitNotFound(unit_id)

        logger.info(f"Updating state for {unit_id}: {step.value} -> {status.value}")
        setattr(unit, step.value, status)
        unit.last_updated = utcnow()
        self._write(document)
        return unit

    def get_step_status(self, unit_id: str, step: StepName) -> StepStatus:
        unit = self.get(unit_id)
        if unit is None:
            raise UnitNotFound(unit_id)
        return unit.status_of(step)

    def list_units(self) -> list[MigrationUnit]:
        return list(self.load().databases)
