"""Advisory per-unit lock around an engine run."""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path
from typing import Optional

from .exceptions import StoreError, UnitLocked

logger = logging.getLogger(__name__)


class UnitLock:
    """Exclusive ``flock`` on ``<state_file>.<unit>.lock``.

    The lock is released when the context exits or the process dies, so a
    crashed run never leaves a stale lock behind. The file itself is left in
    place; its content is the PID of the last holder.
    """

    def __init__(self, state_file: str | Path, unit_id: str) -> None:
        state_path = Path(state_file)
        self.unit_id = unit_id
        self.path = state_path.with_name(f"{state_path.name}.{unit_id}.lock")
        self._fd: Optional[int] = None

    def acquire(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)
        except OSError as exc:
            raise StoreError(f"Cannot open lock file {self.path}: {exc}") from exc
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            raise UnitLocked(self.unit_id, str(self.path)) from None
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        logger.debug(f"Acquired lock {self.path}")

    def release(self) -> None:
        if self._fd is None:
            return
        fcntl.flock(self._fd, fcntl.LOCK_UN)
        os.close(self._fd)
        self._fd = None
        logger.debug(f"Released lock {self.path}")

    def __enter__(self) -> "UnitLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()
