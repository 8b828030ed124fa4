"""Data models for persisted migration state."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, field_validator


class StepName(str, Enum):
    """Migration steps, declared in execution order."""

    DUMP = "dump"
    UPLOAD = "upload"
    RESTORE = "restore"


class StepStatus(str, Enum):
    """Persisted outcome of a step. There is no persisted "running" state."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


STEP_ORDER: tuple[StepName, ...] = (StepName.DUMP, StepName.UPLOAD, StepName.RESTORE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class MigrationUnit(BaseModel):
    """One database record in the state document.

    The flat ``name/dump/upload/restore/last_updated`` layout is the on-disk
    contract and must stay stable for resumption to keep working.
    """

    name: str
    dump: StepStatus = StepStatus.PENDING
    upload: StepStatus = StepStatus.PENDING
    restore: StepStatus = StepStatus.PENDING
    last_updated: datetime = Field(default_factory=utcnow)

    @field_serializer("last_updated")
    def _serialize_timestamp(self, value: datetime) -> str:
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.strftime("%Y-%m-%dT%H:%M:%SZ")

    @property
    def id(self) -> str:
        return self.name

    @property
    def steps(self) -> dict[StepName, StepStatus]:
        """Step statuses in execution order."""
        return {step: self.status_of(step) for step in STEP_ORDER}

    def status_of(self, step: StepName) -> StepStatus:
        return StepStatus(getattr(self, StepName(step).value))

    def is_complete(self) -> bool:
        return all(status is StepStatus.SUCCESS for status in self.steps.values())


class StateDocument(BaseModel):
    """Whole persisted state: one record per migration unit."""

    databases: list[MigrationUnit] = Field(default_factory=list)

    def find(self, unit_id: str) -> Optional[MigrationUnit]:
        for unit in self.databases:
            if unit.name == unit_id:
                return unit
        return None

    @field_validator("databases")
    @classmethod
    def _unique_names(cls, units: list[MigrationUnit]) -> list[MigrationUnit]:
        seen: set[str] = set()
        for unit in units:
            if unit.name in seen:
                raise ValueError(f"duplicate migration unit '{unit.name}'")
            seen.add(unit.name)
        return units
