"""Scenes: ordered, mutable line sequences with a cursor and a branch point."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence, Tuple, TYPE_CHECKING

from .collaborators import LEFT
from .rendering import render_line

if TYPE_CHECKING:  # pragma: no cover - imported only for type checking
    from .collaborators import Stage

logger = logging.getLogger(__name__)


def _validate_text(value: str, *, field_name: str) -> str:
    """Validate and normalise free-form text fields used by scripts."""

    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string, got {type(value)!r}")

    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{field_name} must be a non-empty string")

    return stripped


class SceneState(Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


class ExitKind(Enum):
    """How the orchestrator moves on once a scene is exhausted."""

    CUT = "cut"
    DAY = "day"
    CLIMAX = "climax"
    ENDING = "ending"


@dataclass(frozen=True)
class SceneExit:
    """Successor relationship declared by a scene script."""

    kind: ExitKind
    target: str | None = None
    label: str | None = None
    interlude_background: str | None = None
    cue: str | None = None
    locks_memory: bool = False

    def __post_init__(self) -> None:
        if self.kind is ExitKind.ENDING:
            if self.target is not None:
                raise ValueError("an ending exit cannot name a target scene")
        elif not self.target:
            raise ValueError(f"{self.kind.value} exits must name a target scene")
        if self.kind is ExitKind.DAY and not self.label:
            raise ValueError("day exits need a label to show between scenes")


@dataclass(frozen=True)
class BranchOption:
    """One pick offered at a branch point and the line it injects."""

    label: str
    line: str
    exit: SceneExit | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "label", _validate_text(self.label, field_name="label"))
        object.__setattr__(self, "line", _validate_text(self.line, field_name="line"))


@dataclass(frozen=True)
class BranchPoint:
    """The cursor at which a scene asks the player to choose once."""

    cursor: int
    prompt: str
    options: Tuple[BranchOption, ...]
    cancel_line: str | None = None
    portrait: str | None = None
    overlay_alpha: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "prompt", _validate_text(self.prompt, field_name="prompt")
        )
        options = tuple(self.options)
        if not options:
            raise ValueError("a branch point needs at least one option")
        object.__setattr__(self, "options", options)
        if self.overlay_alpha is not None and not 0.0 <= self.overlay_alpha <= 1.0:
            raise ValueError("overlay_alpha must be between 0 and 1")

    def labels(self) -> Tuple[str, ...]:
        return tuple(option.label for option in self.options)

    def line_for(self, selection: int | None) -> str | None:
        """Return the line injected for ``selection`` (``None`` = cancelled).

        Raises:
            IndexError: If ``selection`` is not a valid option index.
        """

        if selection is None:
            return self.cancel_line
        if not 0 <= selection < len(self.options):
            raise IndexError(f"branch option {selection} does not exist")
        return self.options[selection].line


@dataclass(frozen=True)
class SceneScript:
    """Static description of one scene variant."""

    tag: str
    day: int
    lines: Tuple[str, ...]
    exit: SceneExit
    background: str | None = None
    track: str | None = None
    track_loop: bool = True
    track_volume: float = 1.0
    branch: BranchPoint | None = None
    presentation: str = "dialogue"
    flash_ms: int | None = None
    stops_audio: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "tag", _validate_text(self.tag, field_name="tag"))
        lines = tuple(self.lines)
        if not lines:
            raise ValueError(f"scene '{self.tag}' must have at least one line")
        object.__setattr__(self, "lines", lines)
        if self.day < 0:
            raise ValueError("day must not be negative")
        if not 0.0 <= self.track_volume <= 1.0:
            raise ValueError("track_volume must be between 0 and 1")
        if self.presentation not in ("dialogue", "caption"):
            raise ValueError(f"unknown presentation: {self.presentation!r}")
        if self.branch is not None and not 1 <= self.branch.cursor < len(lines):
            raise ValueError(
                f"branch cursor {self.branch.cursor} is outside scene '{self.tag}'"
            )

    def restored_length(self, branch_resolved: bool, branch_choice: int | None) -> int:
        """Line count of an instance whose branch outcome is replayed.

        Raises:
            IndexError: If ``branch_choice`` is not a valid option index.
        """

        if self.branch is None or not branch_resolved:
            return len(self.lines)
        injected = self.branch.line_for(branch_choice)
        return len(self.lines) + (1 if injected is not None else 0)


@dataclass
class Scene:
    """A live instance of a :class:`SceneScript`.

    The cursor always satisfies ``0 <= cursor <= len(lines)``; reaching
    ``len(lines)`` means the scene is exhausted and its owner should move on.
    """

    script: SceneScript
    lines: List[str] = field(init=False)
    cursor: int = field(init=False, default=0)
    state: SceneState = field(init=False, default=SceneState.INACTIVE)
    branch_resolved: bool = field(init=False, default=False)
    branch_choice: int | None = field(init=False, default=None)
    _stage: "Stage | None" = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        self.lines = list(self.script.lines)

    @property
    def tag(self) -> str:
        return self.script.tag

    @property
    def day(self) -> int:
        return self.script.day

    @property
    def exit(self) -> SceneExit:
        """The successor chosen for this instance."""

        branch = self.script.branch
        if branch is not None and self.branch_resolved and self.branch_choice is not None:
            override = branch.options[self.branch_choice].exit
            if override is not None:
                return override
        return self.script.exit

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.lines)

    @property
    def current_line(self) -> str | None:
        return None if self.exhausted else self.lines[self.cursor]

    def pending_branch(self) -> BranchPoint | None:
        """Return the branch point the next :meth:`advance` will open, if any."""

        branch = self.script.branch
        if (
            branch is not None
            and not self.branch_resolved
            and self.state is SceneState.ACTIVE
            and self.cursor + 1 == branch.cursor
        ):
            return branch
        return None

    def activate(self, stage: "Stage") -> None:
        """Start (or restart) the scene from its first line."""

        self._stage = stage
        self.lines = list(self.script.lines)
        self.cursor = 0
        self.branch_resolved = False
        self.branch_choice = None
        self.state = SceneState.ACTIVE
        logger.info("Activating scene %s", self.tag)

        display = stage.display
        display.clear_portraits()
        if self.script.presentation == "caption":
            display.hide_dialogue()
        if self.script.stops_audio:
            stage.audio.stop()
        if self.script.background is not None:
            display.set_background(self.script.background)
        if self.script.flash_ms:
            display.flash(self.script.flash_ms)
        if self.script.track is not None:
            stage.audio.play(
                self.script.track, self.script.track_loop, self.script.track_volume
            )
        self._render()

    def advance(self) -> SceneState:
        """Move to the next line, opening the branch point when it is reached."""

        if self.state is SceneState.INACTIVE:
            raise RuntimeError(f"scene '{self.tag}' has not been activated")
        if self.state is SceneState.EXHAUSTED:
            return self.state

        self.cursor += 1
        branch = self.script.branch
        if (
            branch is not None
            and self.cursor == branch.cursor
            and not self.branch_resolved
        ):
            self._resolve_branch(branch)
            self._render()
            return self.state

        if self.cursor < len(self.lines):
            self._render()
        else:
            self.state = SceneState.EXHAUSTED
            logger.info("Scene %s exhausted at cursor %d", self.tag, self.cursor)
        return self.state

    def restore_cursor_to(self, index: int) -> None:
        """Jump straight to ``index`` without opening the branch point.

        Raises:
            IndexError: If ``index`` lies outside ``0..len(lines)``.
        """

        self._require_stage()
        if not 0 <= index <= len(self.lines):
            raise IndexError(
                f"cursor {index} is outside scene '{self.tag}' "
                f"({len(self.lines)} lines)"
            )
        self.cursor = index
        branch = self.script.branch
        if branch is not None and index >= branch.cursor:
            self.branch_resolved = True
        if self.exhausted:
            self.state = SceneState.EXHAUSTED
            self._clear()
            return
        if self.state is SceneState.EXHAUSTED:
            self.state = SceneState.ACTIVE
        self._render()

    def replay_branch(self, choice: int | None) -> None:
        """Re-apply a previously recorded branch outcome without asking again."""

        branch = self.script.branch
        if branch is None:
            raise ValueError(f"scene '{self.tag}' has no branch point")
        if self.branch_resolved:
            return
        line = branch.line_for(choice)
        self._mark_resolved(choice, line)

    def _resolve_branch(self, branch: BranchPoint) -> None:
        stage = self._require_stage()
        display = stage.display
        if branch.portrait is not None:
            display.show_speaker_portrait(LEFT, branch.portrait, False)
        if branch.overlay_alpha is not None:
            display.set_overlay_alpha(branch.overlay_alpha)
        try:
            choice = stage.choose(branch.prompt, branch.labels())
        finally:
            if branch.overlay_alpha is not None:
                display.set_overlay_alpha(0.0)
        logger.info("Scene %s branch resolved with choice %r", self.tag, choice)
        self._mark_resolved(choice, branch.line_for(choice))

    def _mark_resolved(self, choice: int | None, line: str | None) -> None:
        branch = self.script.branch
        if branch is None:
            raise ValueError(f"scene '{self.tag}' has no branch point")
        self.branch_resolved = True
        self.branch_choice = choice
        if line is not None:
            self.inject_line(branch.cursor + 1, line)

    def inject_line(self, position: int, line: str) -> None:
        """Insert ``line`` at ``position``, shifting later lines right by one."""

        if not 0 <= position <= len(self.lines):
            raise IndexError(f"cannot inject a line at position {position}")
        self.lines.insert(position, line)

    def _render(self) -> None:
        stage = self._require_stage()
        line = self.current_line
        if line is None:
            return
        if self.script.presentation == "caption":
            stage.display.show_caption(line)
        else:
            render_line(stage.display, line)

    def _clear(self) -> None:
        display = self._require_stage().display
        if self.script.presentation == "caption":
            display.hide_caption()
        else:
            display.clear_speaker_line()
            display.clear_portraits()
            display.hide_dialogue()

    def _require_stage(self) -> "Stage":
        if self._stage is None:
            raise RuntimeError(f"scene '{self.tag}' has not been activated")
        return self._stage


def validate_scripts(scripts: Sequence[SceneScript]) -> None:
    """Check that tags are unique and every exit points at a known scene."""

    tags: set[str] = set()
    for script in scripts:
        if script.tag in tags:
            raise ValueError(f"duplicate scene tag '{script.tag}'")
        tags.add(script.tag)

    for script in scripts:
        exits = [script.exit]
        if script.branch is not None:
            exits.extend(o.exit for o in script.branch.options if o.exit is not None)
        for scene_exit in exits:
            if scene_exit.target is not None and scene_exit.target not in tags:
                raise ValueError(
                    f"Scene '{script.tag}' exits to unknown target '{scene_exit.target}'."
                )


__all__ = [
    "BranchOption",
    "BranchPoint",
    "ExitKind",
    "Scene",
    "SceneExit",
    "SceneScript",
    "SceneState",
    "validate_scripts",
]
