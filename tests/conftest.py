"""Test configuration for the Silent Convent engine."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest

from silentconvent.collaborators import (
    RecordingAudio,
    RecordingDisplay,
    ScriptedChoiceResolver,
    Stage,
)
from silentconvent.orchestrator import TransitionOrchestrator
from silentconvent.scheduler import ManualClock, TaskScheduler


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock: ManualClock) -> TaskScheduler:
    return TaskScheduler(clock)


@pytest.fixture
def display(scheduler: TaskScheduler) -> RecordingDisplay:
    return RecordingDisplay(scheduler)


@pytest.fixture
def audio() -> RecordingAudio:
    return RecordingAudio()


@pytest.fixture
def chooser() -> ScriptedChoiceResolver:
    return ScriptedChoiceResolver()


@pytest.fixture
def stage(
    display: RecordingDisplay,
    audio: RecordingAudio,
    chooser: ScriptedChoiceResolver,
    scheduler: TaskScheduler,
) -> Stage:
    return Stage(display, audio, chooser, scheduler)


@pytest.fixture
def orchestrator(stage: Stage) -> TransitionOrchestrator:
    return TransitionOrchestrator(stage)
