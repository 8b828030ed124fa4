"""Map user facing database labels to canonical migration unit ids."""

from __future__ import annotations

import re
from typing import Iterable, Optional

from pydantic import BaseModel

from .config import ShuttleConfig
from .exceptions import SelectionError

VALID_UNIT_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


class MigrationTarget(BaseModel):
    """A resolved migration unit plus every identifier derived from it.

    All secondary names are computed here and nowhere else. Executors and
    the state store must take them from this object.
    """

    unit_id: str
    source_secret_prefix: str = "db/v16"
    target_secret_prefix: str = "db/opusmatch-non-pro"

    @property
    def database(self) -> str:
        return f"{self.unit_id}_db"

    @property
    def owner(self) -> str:
        return f"{self.unit_id}_owner"

    @property
    def dump_name(self) -> str:
        return f"{self.unit_id}.dump"

    @property
    def source_secret_key(self) -> str:
        return f"{self.source_secret_prefix}/{self.unit_id}"

    @property
    def target_secret_key(self) -> str:
        return f"{self.target_secret_prefix}/{self.owner}"


class EntityResolver:
    """Turn a selected label such as ``sales_db`` into a ``MigrationTarget``."""

    def __init__(
        self,
        suffix: str = "_db",
        source_secret_prefix: str = "db/v16",
        target_secret_prefix: str = "db/opusmatch-non-pro",
    ) -> None:
        self.suffix = suffix
        self.source_secret_prefix = source_secret_prefix
        self.target_secret_prefix = target_secret_prefix

    @classmethod
    def from_config(cls, config: ShuttleConfig) -> "EntityResolver":
        return cls(
            suffix=config.label_suffix,
            source_secret_prefix=config.secrets.source_prefix,
            target_secret_prefix=config.secrets.target_prefix,
        )

    def canonical_id(self, label: Optional[str]) -> str:
        """Strip whitespace and the label suffix, then validate what is left."""
        text = (label or "").strip()
        if not text:
            raise SelectionError("No database selected")
        if self.suffix and text.endswith(self.suffix) and len(text) > len(self.suffix):
            text = text[: -len(self.suffix)]
        if not VALID_UNIT_ID.match(text):
            raise SelectionError(f"Invalid database name: {label!r}")
        return text

    def resolve(self, label: Optional[str], candidates: Optional[Iterable[str]] = None) -> MigrationTarget:
        unit_id = self.canonical_id(label)
        if candidates is not None:
            known = {c.strip() for c in candidates if c}
            if not known & {unit_id, unit_id + self.suffix}:
                raise SelectionError(f"Unknown database: {label!r}")
        return MigrationTarget(
            unit_id=unit_id,
            source_secret_prefix=self.source_secret_prefix,
            target_secret_prefix=self.target_secret_prefix,
        )
