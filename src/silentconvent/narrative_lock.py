"""One-way story flags and the session context that owns them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class OneWayFlag:
    """A boolean that can go from ``False`` to ``True`` and never back."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._set = False

    def trigger(self) -> bool:
        """Set the flag; return ``True`` only on the call that flipped it."""

        if self._set:
            return False
        self._set = True
        logger.info("Flag %s set", self.name)
        return True

    def is_set(self) -> bool:
        return self._set

    def __bool__(self) -> bool:
        return self._set

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, set={self._set})"


class NarrativeLock(OneWayFlag):
    """Memory lock: once triggered, saved games can no longer be loaded."""

    def __init__(self) -> None:
        super().__init__("memory-lock")

    def trigger(self) -> bool:
        flipped = super().trigger()
        if flipped:
            logger.warning("Memory has been broken; loading is now refused")
        return flipped


@dataclass
class NarrativeSession:
    """Per-run story state shared by the orchestrator and the save manager."""

    memory_lock: NarrativeLock = field(default_factory=NarrativeLock)
    story_unlocked: OneWayFlag = field(
        default_factory=lambda: OneWayFlag("story-unlocked")
    )
    started: bool = False


__all__ = ["NarrativeLock", "NarrativeSession", "OneWayFlag"]
