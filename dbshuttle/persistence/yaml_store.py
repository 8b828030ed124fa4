"""YAML file implementation of the state store."""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

import yaml
from pydantic import ValidationError

from ..exceptions import StoreError
from .models import StateDocument
from .repository import StateStore

logger = logging.getLogger(__name__)


class YamlStateStore(StateStore):
    """Persist migration state as a single YAML document.

    The document has the shape ``{databases: [{name, dump, upload, restore,
    last_updated}]}``. Writes go to a temporary file in the same directory,
    are fsynced and then renamed over the original, so a reader never sees a
    half-written document and a completed ``set_step`` survives a crash.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    # ------------------------------------------------------------------
    def load(self) -> StateDocument:
        if not self.path.exists():
            return StateDocument()
        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
            return StateDocument.model_validate(data)
        except (OSError, yaml.YAMLError) as exc:
            raise StoreError(f"Cannot read state file {self.path}: {exc}") from exc
        except ValidationError as exc:
            raise StoreError(f"State file {self.path} is malformed: {exc}") from exc

    def _write(self, document: StateDocument) -> None:
        directory = self.path.parent
        data = document.model_dump(mode="json")
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", dir=directory, prefix=f".{self.path.name}.", delete=False
            ) as tmp:
                tmp_name = tmp.name
                yaml.safe_dump(data, tmp, sort_keys=False)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
            self._fsync_directory(directory)
        except (OSError, yaml.YAMLError) as exc:
            raise StoreError(f"Cannot write state file {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    @staticmethod
    def _fsync_directory(directory: Path) -> None:
        try:
            fd = os.open(directory, os.O_RDONLY)
        except OSError:  # pragma: no cover - platforms without directory fds
            return
        try:
            os.fsync(fd)
        except OSError as exc:  # pragma: no cover - some filesystems refuse dir fsync
            logger.debug(f"Directory fsync skipped for {directory}: {exc}")
        finally:
            os.close(fd)
