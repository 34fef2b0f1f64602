"""Silent Convent: a scene-driven narrative presentation engine."""

from .collaborators import (
    AssetLocator,
    AudioPlayer,
    ChoiceResolver,
    Display,
    DisplayFrame,
    RecordingAudio,
    RecordingDisplay,
    ScriptedChoiceResolver,
    Stage,
)
from .controls import AdvanceInput
from .errors import (
    CorruptSaveError,
    MemoryLockedError,
    PersistenceError,
    SaveNotFoundError,
)
from .game import Game, GameStatus, build_game
from .narrative_lock import NarrativeLock, NarrativeSession, OneWayFlag
from .orchestrator import DayTransition, Phase, TransitionOrchestrator
from .persistence import (
    FileSaveStore,
    InMemorySaveStore,
    LoadResult,
    LoadStatus,
    SaveManager,
    SaveRecord,
    SaveStore,
)
from .rendering import RenderedLine, classify_line, render_line
from .scene import (
    BranchOption,
    BranchPoint,
    ExitKind,
    Scene,
    SceneExit,
    SceneScript,
    SceneState,
)
from .scheduler import ManualClock, TaskScheduler
from .settings import EngineSettings, TransitionTimings
from .story import FIRST_SCENE, SCENE_REGISTRY, STORY_REVIEW_TEXT, build_registry

__all__ = [
    "AdvanceInput",
    "AssetLocator",
    "AudioPlayer",
    "BranchOption",
    "BranchPoint",
    "ChoiceResolver",
    "CorruptSaveError",
    "DayTransition",
    "Display",
    "DisplayFrame",
    "EngineSettings",
    "ExitKind",
    "FIRST_SCENE",
    "FileSaveStore",
    "Game",
    "GameStatus",
    "InMemorySaveStore",
    "LoadResult",
    "LoadStatus",
    "ManualClock",
    "MemoryLockedError",
    "NarrativeLock",
    "NarrativeSession",
    "OneWayFlag",
    "PersistenceError",
    "Phase",
    "RecordingAudio",
    "RecordingDisplay",
    "RenderedLine",
    "SCENE_REGISTRY",
    "STORY_REVIEW_TEXT",
    "SaveManager",
    "SaveNotFoundError",
    "SaveRecord",
    "SaveStore",
    "Scene",
    "SceneExit",
    "SceneScript",
    "SceneState",
    "ScriptedChoiceResolver",
    "Stage",
    "TaskScheduler",
    "TransitionOrchestrator",
    "TransitionTimings",
    "build_game",
    "build_registry",
    "classify_line",
    "render_line",
]
