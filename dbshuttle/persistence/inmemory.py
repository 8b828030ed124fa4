"""In-memory implementation of the state store."""

from __future__ import annotations

from .models import StateDocument
from .repository import StateStore


class InMemoryStateStore(StateStore):
    """Store migration state in local memory.

    Useful for tests or throwaway experiments. Data is not persisted across
    process restarts. Copies are handed out so callers cannot mutate the
    stored document without going through ``set_step``.
    """

    def __init__(self, document: StateDocument | None = None) -> None:
        self._document = (document or StateDocument()).model_copy(deep=True)
        self.writes = 0

    def load(self) -> StateDocument:
        return self._document.model_copy(deep=True)

    def _write(self, document: StateDocument) -> None:
        self._document = document.model_copy(deep=True)
        self.writes += 1
