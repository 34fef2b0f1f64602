"""Debounced advance input sitting between the player and the orchestrator."""

from __future__ import annotations

import logging
from typing import Callable, FrozenSet, Set

from .collaborators import Display
from .scheduler import TaskScheduler

logger = logging.getLogger(__name__)

COOLDOWN = "cooldown"
TRANSITION = "transition"
DISABLED = "disabled"


class AdvanceInput:
    """The "Next" control.

    The control is enabled only while no hold is active. An accepted press
    places a ``cooldown`` hold for ``cooldown_ms`` so rapid presses cannot
    start overlapping sequences; the orchestrator places a ``transition``
    hold for the length of each fade sequence. The enabled state is mirrored
    onto the display.
    """

    def __init__(
        self,
        display: Display,
        scheduler: TaskScheduler,
        on_advance: Callable[[], None],
        *,
        cooldown_ms: int = 300,
    ) -> None:
        if cooldown_ms < 0:
            raise ValueError("cooldown_ms must not be negative")
        self._display = display
        self._scheduler = scheduler
        self._on_advance = on_advance
        self.cooldown_ms = cooldown_ms
        self._holds: Set[str] = set()

    @property
    def enabled(self) -> bool:
        return not self._holds

    @property
    def holds(self) -> FrozenSet[str]:
        return frozenset(self._holds)

    def press(self) -> bool:
        """Handle one press; return ``True`` when it was accepted."""

        if self._holds:
            logger.debug("Ignoring advance press while held by %s", sorted(self._holds))
            return False
        if self.cooldown_ms:
            self.hold(COOLDOWN)
            self._scheduler.call_later(
                self.cooldown_ms,
                lambda: self.release(COOLDOWN),
                name="input-cooldown",
            )
        self._on_advance()
        return True

    def hold(self, reason: str) -> None:
        was_enabled = self.enabled
        self._holds.add(reason)
        if was_enabled:
            self._display.disable_advance_control()

    def release(self, reason: str) -> None:
        if reason not in self._holds:
            return
        self._holds.discard(reason)
        if self.enabled:
            self._display.enable_advance_control()

    def enable(self) -> None:
        """Lift an explicit :meth:`disable`; idempotent."""

        self._holds.discard(DISABLED)
        if self.enabled:
            self._display.enable_advance_control()

    def disable(self) -> None:
        self.hold(DISABLED)


__all__ = ["AdvanceInput", "COOLDOWN", "DISABLED", "TRANSITION"]
