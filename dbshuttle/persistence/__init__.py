"""Persistence layer for migration state."""

from __future__ import annotations

from typing import Optional

from ..config import ShuttleConfig, load_config
from .inmemory import InMemoryStateStore
from .models import (
    STEP_ORDER,
    MigrationUnit,
    StateDocument,
    StepName,
    StepStatus,
)
from .repository import StateStore
from .yaml_store import YamlStateStore


def get_state_store(config: Optional[ShuttleConfig] = None) -> StateStore:
    """Factory function to obtain the configured state store.

    The YAML backend writes to ``config.state_file``; the ``memory`` backend
    keeps state for the lifetime of the process only.
    """

    config = config or load_config()
    if config.state_backend == "memory":
        return InMemoryStateStore()
    if config.state_backend == "yaml":
        return YamlStateStore(config.state_file)
    raise ValueError(f"Unsupported state backend: {config.state_backend}")


__all__ = [
    "STEP_ORDER",
    "InMemoryStateStore",
    "MigrationUnit",
    "StateDocument",
    "StateStore",
    "StepName",
    "StepStatus",
    "YamlStateStore",
    "get_state_store",
]
