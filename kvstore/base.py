"""Store base class (abstract).

The registry depends on this type, so an alternative backend (memory/db/etc.)
can be injected without changing registry logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Optional, TypedDict


class HookRecord(TypedDict):
    command: str
    trigger: str
    key: str


class StateDocument(TypedDict):
    keys: Dict[str, str]
    commands: Dict[str, str]
    hooks: Dict[str, HookRecord]


def empty_document() -> StateDocument:
    return {"keys": {}, "commands": {}, "hooks": {}}


class StoreBase(ABC):
    @abstractmethod
    def get_path(self) -> str:
        """Get the path/identifier of the store (if applicable)."""
        ...

    @abstractmethod
    def read(self) -> StateDocument:
        """Read the full state document. Missing storage yields an empty document."""
        ...

    @abstractmethod
    def write(self, document: StateDocument) -> None:
        """Persist the full state document as one unit."""
        ...


class MemoryStore(StoreBase):
    """Volatile store; keeps a deep copy of the last written document."""

    def __init__(self, document: Optional[StateDocument] = None) -> None:
        self._document = _copy_document(document or empty_document())
        self.writes = 0

    def get_path(self) -> str:
        return ":memory:"

    def read(self) -> StateDocument:
        return _copy_document(self._document)

    def write(self, document: StateDocument) -> None:
        self._document = _copy_document(document)
        self.writes += 1


def _copy_document(document: StateDocument) -> StateDocument:
    return {
        "keys": dict(document["keys"]),
        "commands": dict(document["commands"]),
        "hooks": {name: dict(rec) for name, rec in document["hooks"].items()},  # type: ignore[misc]
    }
