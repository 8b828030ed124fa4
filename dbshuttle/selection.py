"""Listing and interactive selection of databases to migrate."""

from __future__ import annotations

import logging
import shutil
from typing import Optional, Protocol, Sequence

import typer

from .credentials import SecretProvider
from .utils.shell import run_command

logger = logging.getLogger(__name__)


class DatabaseCatalog:
    """Candidate labels derived from the source password store layout.

    Every entry below ``prefix`` is one database; labels carry ``suffix`` so
    the operator sees the real database name (``sales`` -> ``sales_db``).
    """

    def __init__(self, secrets: SecretProvider, prefix: str, suffix: str = "_db") -> None:
        self.secrets = secrets
        self.prefix = prefix
        self.suffix = suffix

    def list_labels(self) -> list[str]:
        logger.debug(f"Retrieving list of available databases under {self.prefix}")
        return [f"{name}{self.suffix}" for name in self.secrets.list_keys(self.prefix) if name]


class Selector(Protocol):
    def choose(self, labels: Sequence[str]) -> Optional[str]:
        """Return the chosen label, or ``None`` if nothing was picked."""


class FzfSelector:
    """Fuzzy selection through ``fzf``."""

    def __init__(self, executable: str = "fzf") -> None:
        self.executable = executable

    def choose(self, labels: Sequence[str]) -> Optional[str]:
        result = run_command(
            [
                self.executable,
                "--header=Select database to migrate",
                "--height=40%",
                "--layout=reverse",
            ],
            input="\n".join(labels),
        )
        choice = result.stdout.strip()
        return choice if result.ok and choice else None


class PromptSelector:
    """Numbered menu for terminals without ``fzf``."""

    def choose(self, labels: Sequence[str]) -> Optional[str]:
        if not labels:
            return None
        typer.echo("Available databases:")
        for index, label in enumerate(labels, start=1):
            typer.echo(f"{index}) {label}")
        choice = typer.prompt("Enter the number of the database to migrate", default="", show_default=False)
        try:
            position = int(choice)
        except ValueError:
            return None
        if 1 <= position <= len(labels):
            return labels[position - 1]
        return None


def default_selector() -> Selector:
    if shutil.which("fzf"):
        return FzfSelector()
    logger.warning("fzf is not installed, falling back to manual selection")
    return PromptSelector()
