"""Error types raised by the save/load layer."""

from __future__ import annotations


class PersistenceError(RuntimeError):
    """Base class for failures surfaced by the persistence layer."""


class SaveNotFoundError(PersistenceError, KeyError):
    """Raised when no record is stored under the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Save '{name}' does not exist")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class CorruptSaveError(PersistenceError, ValueError):
    """Raised when a stored record cannot be turned back into a scene."""


class MemoryLockedError(PersistenceError):
    """Raised when a load is attempted after the memory lock was triggered."""


__all__ = [
    "PersistenceError",
    "SaveNotFoundError",
    "CorruptSaveError",
    "MemoryLockedError",
]
