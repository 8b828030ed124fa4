"""Credential retrieval backends."""

from __future__ import annotations

import os
import re
from typing import Mapping, Optional, Protocol

from .config import ShuttleConfig
from .exceptions import SecretError
from .utils.shell import run_command

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


class SecretProvider(Protocol):
    """Protocol for secret store backends."""

    def get_secret(self, key: str) -> str:
        """Return the secret stored under ``key`` or raise ``SecretError``."""

    def list_keys(self, prefix: str) -> list[str]:
        """Return the entry names directly below ``prefix``."""


class PassSecretProvider:
    """Read secrets from the ``pass`` password store."""

    def __init__(self, executable: str = "pass", timeout: Optional[float] = 30) -> None:
        self.executable = executable
        self.timeout = timeout

    def get_secret(self, key: str) -> str:
        result = run_command([self.executable, "show", key], timeout=self.timeout)
        if not result.ok:
            raise SecretError(key, result.describe_failure())
        lines = result.stdout.splitlines()
        value = lines[0].strip() if lines else ""
        if not value:
            raise SecretError(key, "secret is empty")
        return value

    def list_keys(self, prefix: str) -> list[str]:
        result = run_command([self.executable, "ls", prefix], timeout=self.timeout)
        if not result.ok:
            raise SecretError(prefix, result.describe_failure())
        return parse_pass_listing(result.stdout)


class EnvSecretProvider:
    """Read secrets from environment variables.

    ``db/v16/sales`` is looked up as ``DBSHUTTLE_SECRET_DB_V16_SALES``.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None, prefix: str = "DBSHUTTLE_SECRET_") -> None:
        self.environ = environ if environ is not None else os.environ
        self.prefix = prefix

    def env_name(self, key: str) -> str:
        return self.prefix + re.sub(r"[^A-Za-z0-9]", "_", key).upper()

    def get_secret(self, key: str) -> str:
        value = self.environ.get(self.env_name(key))
        if not value:
            raise SecretError(key, f"{self.env_name(key)} is not set")
        return value

    def list_keys(self, prefix: str) -> list[str]:
        head = self.env_name(prefix) + "_"
        return sorted(name[len(head):].lower() for name in self.environ if name.startswith(head))


class StaticSecretProvider:
    """Secrets held in a plain mapping."""

    def __init__(self, secrets: Mapping[str, str]) -> None:
        self._secrets = dict(secrets)

    def get_secret(self, key: str) -> str:
        try:
            return self._secrets[key]
        except KeyError:
            raise SecretError(key) from None

    def list_keys(self, prefix: str) -> list[str]:
        head = prefix.rstrip("/") + "/"
        return sorted(
            key[len(head):] for key in self._secrets if key.startswith(head) and "/" not in key[len(head):]
        )


def parse_pass_listing(output: str) -> list[str]:
    """Extract entry names from the tree printed by ``pass ls``.

    The first line echoes the queried folder; every following line is a tree
    branch such as ``├── sales``.
    """
    names = []
    for line in _ANSI_ESCAPE.sub("", output).splitlines()[1:]:
        fields = line.split()
        if len(fields) < 2:
            continue
        names.append(fields[-1])
    return names


def get_secret_provider(config: ShuttleConfig) -> SecretProvider:
    """Factory for the configured secret backend."""
    if config.secrets.backend == "pass":
        return PassSecretProvider()
    if config.secrets.backend == "env":
        return EnvSecretProvider()
    raise ValueError(f"Unsupported secrets backend: {config.secrets.backend}")
