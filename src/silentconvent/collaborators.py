"""Capability contracts for the display, audio and choice collaborators.

The engine never renders pixels or decodes audio itself. It talks to the
abstract :class:`Display`, :class:`AudioPlayer` and :class:`ChoiceResolver`
interfaces defined here, always through a :class:`Stage` which logs and
swallows collaborator failures so a broken asset can never corrupt scene or
cursor state. Headless recording implementations back the CLI, the HTTP play
service and the tests.
"""

from __future__ import annotations

import functools
import logging
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Deque, Dict, Iterable, List, Sequence, Tuple

from .scheduler import TaskScheduler

logger = logging.getLogger(__name__)

LEFT = "left"
RIGHT = "right"


class Display(ABC):
    """Visual surface the scenes and the orchestrator draw on."""

    @abstractmethod
    def set_background(self, ref: str) -> None:
        """Show the background image identified by ``ref``."""

    @abstractmethod
    def current_background(self) -> str | None:
        """Return the reference of the background currently shown."""

    @abstractmethod
    def show_plain_line(self, text: str) -> None:
        """Show a narrative line in the main dialogue box."""

    @abstractmethod
    def show_speaker_line(self, name: str, text: str) -> None:
        """Show ``text`` in the named speech box attributed to ``name``."""

    @abstractmethod
    def clear_speaker_line(self) -> None:
        """Hide the named speech box."""

    @abstractmethod
    def show_speaker_portrait(self, side: str, char_ref: str, dimmed: bool) -> None:
        """Show a character portrait on ``side`` (``"left"`` or ``"right"``)."""

    @abstractmethod
    def clear_portraits(self) -> None:
        """Remove every visible portrait."""

    @abstractmethod
    def fade_to(
        self,
        opaque: bool,
        duration_ms: int,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        """Animate the fade overlay and call ``on_complete`` when it settles."""

    @abstractmethod
    def show_caption(self, text: str) -> None:
        """Show centred caption text above the fade overlay."""

    @abstractmethod
    def hide_caption(self) -> None:
        """Hide the centred caption."""

    @abstractmethod
    def hide_dialogue(self) -> None:
        """Hide the main dialogue box."""

    @abstractmethod
    def set_overlay_alpha(self, level: float) -> None:
        """Dim the scene with the overlay at ``level`` (0 = clear, 1 = black)."""

    @abstractmethod
    def flash(self, duration_ms: int) -> None:
        """Flash the screen once."""

    @abstractmethod
    def show_notice(self, text: str) -> None:
        """Present a short modal message to the player."""

    @abstractmethod
    def show_end_prompt(self, label: str) -> None:
        """Offer the player a way back to the main menu after the ending."""

    @abstractmethod
    def set_secondary_control_visible(self, visible: bool) -> None:
        """Show or hide the save/load ("Remember") control."""

    @abstractmethod
    def disable_advance_control(self) -> None:
        """Grey out the advance ("Next") control."""

    @abstractmethod
    def enable_advance_control(self) -> None:
        """Re-enable the advance ("Next") control."""


class AudioPlayer(ABC):
    """Owner of the single audio voice used by the engine."""

    @abstractmethod
    def play(self, ref: str, loop: bool, local_volume: float = 1.0) -> None:
        """Start ``ref``; reuse playback in place when it is already playing."""

    @abstractmethod
    def stop(self) -> None:
        """Stop and release the current voice."""

    @abstractmethod
    def set_master_volume(self, level: float) -> None:
        """Set the master volume (clamped to 0..1)."""

    @abstractmethod
    def get_master_volume(self) -> float:
        """Return the master volume."""

    @abstractmethod
    def current_track_ref(self) -> str | None:
        """Return the track currently owned by the voice, if any."""

    @abstractmethod
    def current_loop_flag(self) -> bool:
        """Return whether the current track loops."""

    @abstractmethod
    def current_local_volume(self) -> float:
        """Return the per-track volume multiplier of the current track."""


class ChoiceResolver(ABC):
    """Presents a finite set of options and returns the player's pick."""

    @abstractmethod
    def present_choices(self, prompt: str, options: Sequence[str]) -> int | None:
        """Return the selected index, or ``None`` when the player cancelled."""


class _Guarded:
    """Proxy that logs and swallows exceptions raised by a collaborator."""

    def __init__(self, target: Any, role: str) -> None:
        self._target = target
        self._role = role

    @property
    def target(self) -> Any:
        return self._target

    def __getattr__(self, name: str) -> Any:
        attribute = getattr(self._target, name)
        if not callable(attribute):
            return attribute

        @functools.wraps(attribute)
        def _call(*args: Any, **kwargs: Any) -> Any:
            try:
                return attribute(*args, **kwargs)
            except Exception:
                logger.exception("%s.%s failed; continuing", self._role, name)
                return None

        return _call


class Stage:
    """Bundle of collaborators handed to scenes and the orchestrator."""

    def __init__(
        self,
        display: Display,
        audio: AudioPlayer,
        chooser: ChoiceResolver,
        scheduler: TaskScheduler,
    ) -> None:
        self._display = display
        self._chooser = chooser
        self.display: Display = _Guarded(display, "display")  # type: ignore[assignment]
        self.audio: AudioPlayer = _Guarded(audio, "audio")  # type: ignore[assignment]
        self.scheduler = scheduler

    @property
    def raw_display(self) -> Display:
        """The display without the failure guard."""

        return self._display

    @property
    def chooser(self) -> ChoiceResolver:
        return self._chooser

    def fade(
        self,
        opaque: bool,
        duration_ms: int,
        on_complete: Callable[[], None],
    ) -> None:
        """Fade the overlay; the continuation runs even if the display fails."""

        try:
            self._display.fade_to(opaque, duration_ms, on_complete)
        except Exception:
            logger.exception("display.fade_to failed; completing on schedule")
            self.scheduler.call_later(duration_ms, on_complete, name="fade-fallback")

    def choose(self, prompt: str, options: Sequence[str]) -> int | None:
        """Ask the resolver for a pick; failures and bad indexes mean cancelled."""

        try:
            selection = self._chooser.present_choices(prompt, tuple(options))
        except Exception:
            logger.exception("Choice resolver failed; treating as cancelled")
            return None
        if selection is None:
            return None
        if not isinstance(selection, int) or not 0 <= selection < len(options):
            logger.warning("Ignoring out-of-range choice %r for %r", selection, prompt)
            return None
        return selection

    def master_volume(self) -> float:
        level = self.audio.get_master_volume()
        return 1.0 if level is None else float(level)


def _clamp(level: float) -> float:
    return max(0.0, min(1.0, float(level)))


class AssetLocator:
    """Resolve asset references against an optional root directory."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root

    def exists(self, ref: str) -> bool:
        if self.root is None:
            return True
        return any(candidate.is_file() for candidate in self._candidates(ref))

    def _candidates(self, ref: str) -> Iterable[Path]:
        path = Path(ref)
        yield self.root / path  # type: ignore[operator]
        yield self.root / "assets" / "images" / path.name  # type: ignore[operator]
        yield self.root / "assets" / "audio" / path.name  # type: ignore[operator]


@dataclass
class DisplayFrame:
    """Snapshot of what a :class:`RecordingDisplay` currently shows."""

    background: str | None = None
    plain_line: str | None = None
    speaker: Tuple[str, str] | None = None
    portraits: Dict[str, Tuple[str, bool]] = field(default_factory=dict)
    caption: str | None = None
    dialogue_visible: bool = True
    overlay_alpha: float = 0.0
    opaque: bool = False
    fading_to: bool | None = None
    notice: str | None = None
    end_prompt: str | None = None
    secondary_control_visible: bool = True
    advance_enabled: bool = True
    flashes: int = 0


class RecordingDisplay(Display):
    """Headless display that keeps the current frame and a call log.

    Fades complete through the scheduler after their duration. When an asset
    root is configured, backgrounds and portraits that cannot be found are
    logged and leave the frame untouched.
    """

    def __init__(
        self,
        scheduler: TaskScheduler,
        *,
        assets: AssetLocator | None = None,
    ) -> None:
        self.scheduler = scheduler
        self.assets = assets or AssetLocator()
        self.frame = DisplayFrame()
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []

    def calls_named(self, name: str) -> List[Tuple[Any, ...]]:
        return [args for call, args in self.calls if call == name]

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))

    def set_background(self, ref: str) -> None:
        self._record("set_background", ref)
        if not self.assets.exists(ref):
            logger.warning("Background image not found: %s", ref)
            return
        self.frame.background = ref

    def current_background(self) -> str | None:
        return self.frame.background

    def show_plain_line(self, text: str) -> None:
        self._record("show_plain_line", text)
        self.frame.dialogue_visible = True
        self.frame.plain_line = text

    def show_speaker_line(self, name: str, text: str) -> None:
        self._record("show_speaker_line", name, text)
        self.frame.speaker = (name, text)
        self.frame.plain_line = None
        self.frame.dialogue_visible = False

    def clear_speaker_line(self) -> None:
        self._record("clear_speaker_line")
        self.frame.speaker = None

    def show_speaker_portrait(self, side: str, char_ref: str, dimmed: bool) -> None:
        self._record("show_speaker_portrait", side, char_ref, dimmed)
        if side not in (LEFT, RIGHT):
            raise ValueError(f"unknown portrait side: {side!r}")
        if not self.assets.exists(f"{char_ref}.png"):
            logger.warning("Portrait not found for %s", char_ref)
            return
        self.frame.portraits[side] = (char_ref, dimmed)

    def clear_portraits(self) -> None:
        self._record("clear_portraits")
        self.frame.portraits.clear()

    def fade_to(
        self,
        opaque: bool,
        duration_ms: int,
        on_complete: Callable[[], None] | None = None,
    ) -> None:
        self._record("fade_to", opaque, duration_ms)
        self.frame.fading_to = opaque

        def _settle() -> None:
            self.frame.fading_to = None
            self.frame.opaque = opaque
            self.frame.overlay_alpha = 1.0 if opaque else 0.0
            if on_complete is not None:
                on_complete()

        self.scheduler.call_later(
            duration_ms, _settle, name="fade-in" if opaque else "fade-out"
        )

    def show_caption(self, text: str) -> None:
        self._record("show_caption", text)
        self.frame.caption = text

    def hide_caption(self) -> None:
        self._record("hide_caption")
        self.frame.caption = None

    def hide_dialogue(self) -> None:
        self._record("hide_dialogue")
        self.frame.dialogue_visible = False
        self.frame.plain_line = None

    def set_overlay_alpha(self, level: float) -> None:
        self._record("set_overlay_alpha", level)
        self.frame.overlay_alpha = _clamp(level)
        self.frame.opaque = self.frame.overlay_alpha >= 1.0

    def flash(self, duration_ms: int) -> None:
        self._record("flash", duration_ms)
        self.frame.flashes += 1

    def show_notice(self, text: str) -> None:
        self._record("show_notice", text)
        self.frame.notice = text

    def show_end_prompt(self, label: str) -> None:
        self._record("show_end_prompt", label)
        self.frame.end_prompt = label

    def set_secondary_control_visible(self, visible: bool) -> None:
        self._record("set_secondary_control_visible", visible)
        self.frame.secondary_control_visible = visible

    def disable_advance_control(self) -> None:
        self._record("disable_advance_control")
        self.frame.advance_enabled = False

    def enable_advance_control(self) -> None:
        self._record("enable_advance_control")
        self.frame.advance_enabled = True


class RecordingAudio(AudioPlayer):
    """Single-voice audio stand-in that tracks what would be playing."""

    def __init__(self, *, assets: AssetLocator | None = None) -> None:
        self.assets = assets or AssetLocator()
        self.master_volume = 1.0
        self.playing = False
        self.reuse_count = 0
        self.history: List[Tuple[str, bool, float]] = []
        self._track: str | None = None
        self._loop = False
        self._local_volume = 1.0

    def play(self, ref: str, loop: bool, local_volume: float = 1.0) -> None:
        if ref == self._track and self.playing:
            self._loop = loop
            self._local_volume = _clamp(local_volume)
            self.reuse_count += 1
            logger.debug("Already playing %s, reusing voice", ref)
            return

        if not self.assets.exists(ref):
            logger.warning("Audio file not found: %s", ref)
            return

        self.stop()
        self._track = ref
        self._loop = loop
        self._local_volume = _clamp(local_volume)
        self.playing = True
        self.history.append((ref, loop, self._local_volume))
        logger.debug(
            "Playing %s at %d%% effective volume",
            ref,
            int(self.master_volume * self._local_volume * 100),
        )

    def stop(self) -> None:
        self.playing = False
        self._track = None
        self._loop = False
        self._local_volume = 1.0

    def set_master_volume(self, level: float) -> None:
        self.master_volume = _clamp(level)

    def get_master_volume(self) -> float:
        return self.master_volume

    def current_track_ref(self) -> str | None:
        return self._track

    def current_loop_flag(self) -> bool:
        return self._loop

    def current_local_volume(self) -> float:
        return self._local_volume


class ScriptedChoiceResolver(ChoiceResolver):
    """Answer choice prompts from a queue; an empty queue means cancelled."""

    def __init__(self, answers: Iterable[int | None] = ()) -> None:
        self._answers: Deque[int | None] = deque(answers)
        self.prompts: List[Tuple[str, Tuple[str, ...]]] = []

    def queue(self, answer: int | None) -> None:
        self._answers.append(answer)

    def clear(self) -> None:
        self._answers.clear()

    def present_choices(self, prompt: str, options: Sequence[str]) -> int | None:
        self.prompts.append((prompt, tuple(options)))
        if not self._answers:
            return None
        return self._answers.popleft()


__all__ = [
    "LEFT",
    "RIGHT",
    "AssetLocator",
    "AudioPlayer",
    "ChoiceResolver",
    "Display",
    "DisplayFrame",
    "RecordingAudio",
    "RecordingDisplay",
    "ScriptedChoiceResolver",
    "Stage",
]
