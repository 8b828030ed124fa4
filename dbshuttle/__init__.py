"""dbshuttle: resumable dump, upload and restore of PostgreSQL databases."""

from .config import ShuttleConfig, load_config, validate_config
from .controller import InvocationController, InvocationOutcome
from .engine import RunReport, WorkflowEngine
from .executors import StepExecutor, StepResult, build_executors
from .persistence import (
    STEP_ORDER,
    MigrationUnit,
    StateStore,
    StepName,
    StepStatus,
    get_state_store,
)
from .resolver import EntityResolver, MigrationTarget

__version__ = "0.1.0"
__all__ = [
    "STEP_ORDER",
    "EntityResolver",
    "InvocationController",
    "InvocationOutcome",
    "MigrationTarget",
    "MigrationUnit",
    "RunReport",
    "ShuttleConfig",
    "StateStore",
    "StepExecutor",
    "StepName",
    "StepResult",
    "StepStatus",
    "WorkflowEngine",
    "build_executors",
    "get_state_store",
    "load_config",
    "validate_config",
]
