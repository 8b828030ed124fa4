"""Step executors for dump, upload and restore."""

from __future__ import annotations

from ..config import ShuttleConfig
from ..credentials import SecretProvider
from ..persistence.models import StepName
from ..resources import RestorePod, SourceHost
from .base import StepExecutor, StepResult
from .dump import DumpExecutor
from .restore import RestoreExecutor
from .upload import UploadExecutor


def build_executors(
    config: ShuttleConfig, secrets: SecretProvider, pod: RestorePod
) -> dict[StepName, StepExecutor]:
    """Wire the production executors; dump and upload share one source host."""
    host = SourceHost(config)
    return {
        StepName.DUMP: DumpExecutor(config, secrets, host),
        StepName.UPLOAD: UploadExecutor(config, host),
        StepName.RESTORE: RestoreExecutor(config, secrets, pod),
    }


__all__ = [
    "DumpExecutor",
    "RestoreExecutor",
    "StepExecutor",
    "StepResult",
    "UploadExecutor",
    "build_executors",
]
