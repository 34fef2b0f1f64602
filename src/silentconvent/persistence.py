"""Save-game persistence: records, storage backends and the save manager."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import (
    CorruptSaveError,
    MemoryLockedError,
    PersistenceError,
    SaveNotFoundError,
)
from .orchestrator import TransitionOrchestrator

logger = logging.getLogger(__name__)

SAVE_FORMAT_VERSION = 2
SAVE_SUFFIX = ".sav"


class SaveRecord(BaseModel):
    """Snapshot of where the player is, as written to a save slot."""

    scene: str = Field(..., min_length=1)
    cursor: int = Field(..., ge=0)
    day: int = Field(..., ge=0)
    background: str | None = None
    audio_track: str | None = None
    audio_loop: bool = False
    audio_volume: float = Field(default=1.0, ge=0.0, le=1.0)
    note: str = ""
    branch_resolved: bool = False
    branch_choice: int | None = Field(default=None, ge=0)
    format_version: int = Field(default=SAVE_FORMAT_VERSION, ge=1)
    saved_at: datetime | None = None

    @field_validator("scene")
    @classmethod
    def _strip_scene(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("scene must be a non-empty string")
        return stripped

    @field_validator("format_version")
    @classmethod
    def _known_version(cls, value: int) -> int:
        if value > SAVE_FORMAT_VERSION:
            raise ValueError(
                f"save format {value} is newer than supported ({SAVE_FORMAT_VERSION})"
            )
        return value

    def to_payload(self) -> Dict[str, Any]:
        """Return a JSON-serialisable representation of the record."""

        return self.model_dump(mode="json")

    @classmethod
    def from_payload(cls, payload: object) -> "SaveRecord":
        """Validate ``payload`` into a record.

        Raises:
            CorruptSaveError: If the payload does not describe a valid record.
        """

        if not isinstance(payload, dict):
            raise CorruptSaveError("Invalid save payload: expected an object")
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise CorruptSaveError(f"Invalid save payload: {exc}") from exc


def _validate_save_name(name: str) -> str:
    if not isinstance(name, str):
        raise TypeError("save name must be a string")
    stripped = name.strip()
    if not stripped:
        raise ValueError("save name must be a non-empty string")
    if "/" in stripped or "\\" in stripped or stripped.startswith("."):
        raise ValueError(f"save name {stripped!r} is not allowed")
    return stripped


class SaveStore(ABC):
    """Interface describing where save records live."""

    @abstractmethod
    def write(self, name: str, record: SaveRecord) -> None:
        """Persist ``record`` under ``name``, replacing any existing record."""

    @abstractmethod
    def read(self, name: str) -> SaveRecord:
        """Return the record stored under ``name``.

        Raises:
            SaveNotFoundError: If nothing is stored under ``name``.
            CorruptSaveError: If the stored data cannot be parsed.
        """

    @abstractmethod
    def delete(self, name: str) -> bool:
        """Remove the record if present; return whether anything was removed."""

    @abstractmethod
    def list_names(self) -> List[str]:
        """Return every stored save name, sorted."""

    def exists(self, name: str) -> bool:
        return _validate_save_name(name) in self.list_names()

    def reserve_name(self, name: str) -> str:
        """Return ``name`` or the first unused ``name(n)`` variant."""

        base = _validate_save_name(name)
        candidate = base
        counter = 1
        while self.exists(candidate):
            candidate = f"{base}({counter})"
            counter += 1
        return candidate


class InMemorySaveStore(SaveStore):
    """Keep save records in local process memory."""

    def __init__(self) -> None:
        self._records: Dict[str, Dict[str, Any]] = {}

    def write(self, name: str, record: SaveRecord) -> None:
        self._records[_validate_save_name(name)] = record.to_payload()

    def read(self, name: str) -> SaveRecord:
        key = _validate_save_name(name)
        try:
            payload = self._records[key]
        except KeyError as exc:
            raise SaveNotFoundError(key) from exc
        return SaveRecord.from_payload(dict(payload))

    def delete(self, name: str) -> bool:
        return self._records.pop(_validate_save_name(name), None) is not None

    def list_names(self) -> List[str]:
        return sorted(self._records)

    def exists(self, name: str) -> bool:
        return _validate_save_name(name) in self._records


class FileSaveStore(SaveStore):
    """Persist save records as JSON ``.sav`` files in one directory.

    The directory is created on the first write, so listing an unused store
    simply returns nothing.
    """

    def __init__(self, storage_dir: Path) -> None:
        self.storage_dir = Path(storage_dir)

    def write(self, name: str, record: SaveRecord) -> None:
        target = self._save_path(name)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        handle = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self.storage_dir,
            prefix=".tmp-",
            suffix=SAVE_SUFFIX,
            delete=False,
        )
        try:
            with handle:
                json.dump(record.to_payload(), handle, indent=2)
            os.replace(handle.name, target)
        except BaseException:
            Path(handle.name).unlink(missing_ok=True)
            raise

    def read(self, name: str) -> SaveRecord:
        save_file = self._save_path(name)
        if not save_file.is_file():
            raise SaveNotFoundError(_validate_save_name(name))
        try:
            payload = json.loads(save_file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise CorruptSaveError(f"Save '{name}' is not valid JSON") from exc
        return SaveRecord.from_payload(payload)

    def delete(self, name: str) -> bool:
        save_file = self._save_path(name)
        if not save_file.exists():
            return False
        save_file.unlink()
        return True

    def list_names(self) -> List[str]:
        if not self.storage_dir.is_dir():
            return []
        return sorted(
            save_path.name[: -len(SAVE_SUFFIX)]
            for save_path in self.storage_dir.glob(f"*{SAVE_SUFFIX}")
            if save_path.is_file() and not save_path.name.startswith(".")
        )

    def exists(self, name: str) -> bool:
        return self._save_path(name).exists()

    def _save_path(self, name: str) -> Path:
        return self.storage_dir / f"{_validate_save_name(name)}{SAVE_SUFFIX}"


class LoadStatus(Enum):
    LOADED = "loaded"
    NOT_FOUND = "not-found"
    CORRUPT = "corrupt"
    REJECTED = "rejected"


@dataclass(frozen=True)
class LoadResult:
    """Outcome of :meth:`SaveManager.load`."""

    status: LoadStatus
    name: str
    message: str = ""
    record: SaveRecord | None = None

    @property
    def ok(self) -> bool:
        return self.status is LoadStatus.LOADED


class SaveManager:
    """Save and restore the orchestrator's current position.

    Persistence failures are reported as return values; nothing raised by
    the store escapes :meth:`save` or :meth:`load`.
    """

    def __init__(self, orchestrator: TransitionOrchestrator, store: SaveStore) -> None:
        self.orchestrator = orchestrator
        self.store = store

    def save(self, name: str, note: str | None = None) -> str | None:
        """Snapshot the current scene; return the stored name or ``None``."""

        scene = self.orchestrator.current
        if scene is None:
            logger.warning("Nothing to save: no scene is loaded")
            return None

        stage = self.orchestrator.stage
        volume = stage.audio.current_local_volume()
        try:
            record = SaveRecord(
                scene=scene.tag,
                cursor=scene.cursor,
                day=scene.day,
                background=stage.display.current_background(),
                audio_track=stage.audio.current_track_ref(),
                audio_loop=bool(stage.audio.current_loop_flag()),
                audio_volume=1.0 if volume is None else volume,
                note=(note or "").strip(),
                branch_resolved=scene.branch_resolved,
                branch_choice=scene.branch_choice,
                saved_at=datetime.now(timezone.utc),
            )
            stored_name = self.store.reserve_name(name)
            self.store.write(stored_name, record)
        except (TypeError, ValueError) as exc:
            logger.warning("Refusing to save under %r: %s", name, exc)
            return None
        except (OSError, PersistenceError):
            logger.exception("Failed to write save %r", name)
            return None

        logger.info("Saved %s at %s:%d", stored_name, scene.tag, scene.cursor)
        return stored_name

    def require_unlocked(self) -> None:
        """Raise :class:`MemoryLockedError` once the memory lock is set."""

        if self.orchestrator.session.memory_lock.is_set():
            raise MemoryLockedError("Memory is locked; saves can no longer be loaded")

    def load(self, name: str) -> LoadResult:
        """Restore the save stored under ``name``.

        The memory lock is checked before the store is touched. A record that
        names an unknown scene, or a cursor or branch choice that does not fit
        that scene, is reported as corrupt and leaves the game untouched.
        """

        try:
            self.require_unlocked()
        except MemoryLockedError as exc:
            self.orchestrator.reject_memory_access()
            return LoadResult(LoadStatus.REJECTED, name, str(exc))

        try:
            name = _validate_save_name(name)
        except (TypeError, ValueError) as exc:
            return LoadResult(LoadStatus.NOT_FOUND, str(name), str(exc))

        try:
            record = self.store.read(name)
        except SaveNotFoundError as exc:
            logger.info("Load failed: %s", exc)
            return LoadResult(LoadStatus.NOT_FOUND, name, str(exc))
        except (CorruptSaveError, TypeError, ValueError) as exc:
            logger.warning("Load failed for %r: %s", name, exc)
            return LoadResult(LoadStatus.CORRUPT, name, str(exc))
        except OSError as exc:
            logger.exception("Could not read save %r", name)
            return LoadResult(LoadStatus.CORRUPT, name, str(exc))

        try:
            scene = self.orchestrator.create_scene(record.scene)
            expected = scene.script.restored_length(
                record.branch_resolved, record.branch_choice
            )
        except KeyError:
            message = f"Save '{name}' refers to unknown scene '{record.scene}'"
            logger.warning(message)
            return LoadResult(LoadStatus.CORRUPT, name, message, record)
        except IndexError:
            message = f"Save '{name}' has an invalid branch choice"
            logger.warning(message)
            return LoadResult(LoadStatus.CORRUPT, name, message, record)

        if record.cursor > expected:
            message = (
                f"Save '{name}' cursor {record.cursor} is outside scene "
                f"'{record.scene}' ({expected} lines)"
            )
            logger.warning(message)
            return LoadResult(LoadStatus.CORRUPT, name, message, record)

        # Saved audio is not resumed; the restored scene starts its own track.
        self.orchestrator.resume_scene(
            scene,
            record.cursor,
            branch_resolved=record.branch_resolved,
            branch_choice=record.branch_choice,
            background=record.background,
        )
        logger.info("Loaded %s at %s:%d", name, record.scene, record.cursor)
        return LoadResult(LoadStatus.LOADED, name, record=record)

    def list_saves(self) -> List[str]:
        try:
            return self.store.list_names()
        except OSError:
            logger.exception("Could not list saves")
            return []

    def delete(self, name: str) -> bool:
        try:
            return self.store.delete(name)
        except (TypeError, ValueError) as exc:
            logger.warning("Cannot delete %r: %s", name, exc)
            return False
        except OSError:
            logger.exception("Failed to delete save %r", name)
            return False


__all__ = [
    "FileSaveStore",
    "InMemorySaveStore",
    "LoadResult",
    "LoadStatus",
    "SAVE_FORMAT_VERSION",
    "SaveManager",
    "SaveRecord",
    "SaveStore",
]
