"""Facade that wires the engine together for the CLI and the play service."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List

from .collaborators import (
    AssetLocator,
    AudioPlayer,
    ChoiceResolver,
    Display,
    RecordingAudio,
    RecordingDisplay,
    ScriptedChoiceResolver,
    Stage,
)
from .narrative_lock import NarrativeSession
from .orchestrator import Phase, TransitionOrchestrator
from .persistence import FileSaveStore, LoadResult, SaveManager, SaveStore
from .scene import BranchPoint, Scene
from .scheduler import TaskScheduler
from .settings import EngineSettings
from .story import STORY_REVIEW_TEXT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameStatus:
    """Read-only view of where the player currently is."""

    scene: str | None
    day: int | None
    cursor: int
    line_count: int
    line: str | None
    phase: Phase
    memory_locked: bool
    story_unlocked: bool
    pending_branch: BranchPoint | None = None


class Game:
    """One playthrough: orchestrator, save manager and session flags."""

    def __init__(
        self,
        orchestrator: TransitionOrchestrator,
        saves: SaveManager,
        settings: EngineSettings | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.saves = saves
        self.settings = settings or EngineSettings()

    @property
    def stage(self) -> Stage:
        return self.orchestrator.stage

    @property
    def scheduler(self) -> TaskScheduler:
        return self.orchestrator.stage.scheduler

    @property
    def session(self) -> NarrativeSession:
        return self.orchestrator.session

    @property
    def current(self) -> Scene | None:
        return self.orchestrator.current

    @property
    def story_unlocked(self) -> bool:
        return self.orchestrator.is_story_unlocked()

    def new_game(self) -> Scene:
        return self.orchestrator.start_new_game()

    def press_advance(self) -> bool:
        """Press "Next"; return ``False`` when the press was debounced."""

        if self.current is None:
            logger.debug("Advance pressed before a game was started")
            return False
        return self.orchestrator.input.press()

    def save(self, name: str, note: str | None = None) -> str | None:
        return self.saves.save(name, note)

    def load(self, name: str) -> LoadResult:
        return self.saves.load(name)

    def list_saves(self) -> List[str]:
        return self.saves.list_saves()

    def delete_save(self, name: str) -> bool:
        return self.saves.delete(name)

    def review_story(self) -> str | None:
        """Return the story review text, or ``None`` until the ending is reached."""

        if not self.story_unlocked:
            return None
        return STORY_REVIEW_TEXT

    def status(self) -> GameStatus:
        scene = self.current
        return GameStatus(
            scene=scene.tag if scene is not None else None,
            day=scene.day if scene is not None else None,
            cursor=scene.cursor if scene is not None else 0,
            line_count=len(scene.lines) if scene is not None else 0,
            line=scene.current_line if scene is not None else None,
            phase=self.orchestrator.phase,
            memory_locked=self.session.memory_lock.is_set(),
            story_unlocked=self.story_unlocked,
            pending_branch=scene.pending_branch() if scene is not None else None,
        )


def build_game(
    settings: EngineSettings | None = None,
    *,
    display: Display | None = None,
    audio: AudioPlayer | None = None,
    chooser: ChoiceResolver | None = None,
    scheduler: TaskScheduler | None = None,
    store: SaveStore | None = None,
) -> Game:
    """Assemble a :class:`Game`, filling any missing collaborator headlessly."""

    resolved = settings or EngineSettings()
    scheduler = scheduler or TaskScheduler()
    assets = AssetLocator(resolved.asset_root)
    stage = Stage(
        display if display is not None else RecordingDisplay(scheduler, assets=assets),
        audio if audio is not None else RecordingAudio(assets=assets),
        chooser if chooser is not None else ScriptedChoiceResolver(),
        scheduler,
    )
    orchestrator = TransitionOrchestrator(stage, timings=resolved.timings)
    saves = SaveManager(
        orchestrator, store if store is not None else FileSaveStore(resolved.save_dir)
    )
    return Game(orchestrator, saves, resolved)


__all__ = ["Game", "GameStatus", "build_game"]
