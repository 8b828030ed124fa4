"""dbshuttle exception hierarchy."""

from __future__ import annotations


class ShuttleError(Exception):
    """Base exception for all dbshuttle errors."""


class ConfigError(ShuttleError):
    """Required settings are missing or invalid."""

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        self.missing = missing or []
        super().__init__(message)


class SelectionError(ShuttleError):
    """No database was chosen, or the chosen label is not valid."""


class SecretError(ShuttleError):
    """A credential could not be retrieved from the secret store."""

    def __init__(self, key: str, reason: str = "secret not found") -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Secret '{key}' unavailable: {reason}")


class ResourceError(ShuttleError):
    """A shared external resource could not be located or provisioned."""


class StoreError(ShuttleError):
    """Migration state could not be read or persisted."""


class UnitNotFound(ShuttleError):
    """The migration unit has no record in the state store."""

    def __init__(self, unit_id: str) -> None:
        self.unit_id = unit_id
        super().__init__(f"No migration state recorded for '{unit_id}'")


class UnitLocked(ShuttleError):
    """Another invocation currently holds the lock for this unit."""

    def __init__(self, unit_id: str, lock_path: str) -> None:
        self.unit_id = unit_id
        self.lock_path = lock_path
        super().__init__(
            f"Migration of '{unit_id}' is already running (lock held on {lock_path})"
        )


class ExecutorFailure(ShuttleError):
    """A step ran and did not complete; its failure is already recorded."""

    def __init__(self, unit_id: str, step: str, reason: str) -> None:
        self.unit_id = unit_id
        self.step = step
        self.reason = reason
        super().__init__(f"Step '{step}' failed for '{unit_id}': {reason}")
