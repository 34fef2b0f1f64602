from __future__ import annotations

import pytest

from silentconvent.collaborators import (
    RecordingAudio,
    RecordingDisplay,
    ScriptedChoiceResolver,
    Stage,
)
from silentconvent.orchestrator import Phase, TransitionOrchestrator
from silentconvent.scene import ExitKind, SceneExit, SceneScript
from silentconvent.scheduler import ManualClock, TaskScheduler
from silentconvent.story import (
    CLIMAX_CAPTION,
    END_PROMPT_LABEL,
    ENDING_CAPTION,
    build_registry,
)

SCRIPTS = (
    SceneScript(
        tag="morning",
        day=3,
        lines=("m1", "m2"),
        track="morning.wav",
        exit=SceneExit(ExitKind.DAY, target="noon", label="Day 3"),
    ),
    SceneScript(
        tag="noon",
        day=3,
        lines=("n1",),
        track="noon.wav",
        exit=SceneExit(
            ExitKind.DAY,
            target="build-up",
            label="Day 4",
            cue="glitch.wav",
            locks_memory=True,
        ),
    ),
    SceneScript(
        tag="build-up",
        day=4,
        lines=("b1",),
        track="tense.wav",
        exit=SceneExit(
            ExitKind.CLIMAX, target="coda", interlude_background="empty.png"
        ),
    ),
    SceneScript(
        tag="coda",
        day=4,
        lines=("c1", "c2"),
        presentation="caption",
        stops_audio=True,
        exit=SceneExit(ExitKind.ENDING),
    ),
)


@pytest.fixture
def orchestrator(stage: Stage) -> TransitionOrchestrator:
    return TransitionOrchestrator(
        stage, registry=build_registry(SCRIPTS), first_scene="morning"
    )


def test_start_new_game_loads_first_scene(
    orchestrator: TransitionOrchestrator, display: RecordingDisplay
) -> None:
    assert orchestrator.phase is Phase.IDLE
    scene = orchestrator.start_new_game()

    assert orchestrator.current is scene
    assert scene.tag == "morning"
    assert orchestrator.phase is Phase.PLAYING
    assert orchestrator.session.started is True
    assert display.frame.plain_line == "m1"
    assert orchestrator.input.enabled is True


def test_unknown_scene_tag_raises_key_error(orchestrator: TransitionOrchestrator) -> None:
    with pytest.raises(KeyError):
        orchestrator.create_scene("nowhere")


def test_same_day_transition_uses_short_fade_and_ducks_volume(
    orchestrator: TransitionOrchestrator,
    clock: ManualClock,
    scheduler: TaskScheduler,
    display: RecordingDisplay,
    audio: RecordingAudio,
) -> None:
    orchestrator.start_new_game()
    plan = orchestrator.transition_between_days(
        orchestrator.create_scene("noon"), "Day 3"
    )

    assert plan.same_day is True
    assert plan.fade_ms == 350
    assert plan.ducked_volume == pytest.approx(0.8)
    assert display.calls_named("fade_to")[-1] == (True, 350)
    assert orchestrator.phase is Phase.TRANSITIONING
    assert orchestrator.input.enabled is False

    clock.advance(350)
    scheduler.run_due()
    assert audio.master_volume == pytest.approx(0.8)
    assert audio.playing is False
    assert display.frame.caption == "Day 3"
    assert orchestrator.current.tag == "morning"

    clock.advance(899)
    scheduler.run_due()
    assert display.frame.caption == "Day 3"

    clock.advance(1)
    scheduler.run_due()
    assert display.frame.caption is None
    assert orchestrator.current.tag == "noon"
    assert display.calls_named("fade_to")[-1] == (False, 350)
    assert audio.master_volume == pytest.approx(0.8)

    clock.advance(350)
    scheduler.run_due()
    assert audio.master_volume == pytest.approx(1.0)
    assert orchestrator.phase is Phase.PLAYING
    assert orchestrator.input.enabled is True
    assert display.frame.opaque is False


def test_cross_day_transition_uses_long_fade_without_ducking(
    orchestrator: TransitionOrchestrator,
    clock: ManualClock,
    scheduler: TaskScheduler,
    display: RecordingDisplay,
    audio: RecordingAudio,
) -> None:
    orchestrator.start_new_game()
    plan = orchestrator.transition_between_days(
        orchestrator.create_scene("build-up"), "Day 4"
    )

    assert plan.same_day is False
    assert plan.fade_ms == 700
    assert plan.ducked_volume == plan.original_volume

    clock.advance(700)
    scheduler.run_due()
    assert audio.master_volume == pytest.approx(1.0)
    assert display.frame.caption == "Day 4"

    scheduler.drain()
    assert orchestrator.current.tag == "build-up"
    assert display.calls_named("fade_to")[-1] == (False, 700)


def test_exhausting_a_scene_follows_its_exit(
    orchestrator: TransitionOrchestrator, scheduler: TaskScheduler
) -> None:
    orchestrator.start_new_game()
    orchestrator.advance_current()
    orchestrator.advance_current()

    assert orchestrator.phase is Phase.TRANSITIONING
    assert orchestrator.current.tag == "morning"

    scheduler.drain()
    assert orchestrator.current.tag == "noon"
    assert orchestrator.phase is Phase.PLAYING


def test_input_is_ignored_while_a_transition_runs(
    orchestrator: TransitionOrchestrator, scheduler: TaskScheduler
) -> None:
    orchestrator.start_new_game()
    orchestrator.advance_current()
    orchestrator.advance_current()
    fades_before = len(orchestrator.stage.raw_display.calls_named("fade_to"))

    assert orchestrator.input.press() is False
    orchestrator.advance_current()

    assert len(orchestrator.stage.raw_display.calls_named("fade_to")) == fades_before
    scheduler.drain()
    assert orchestrator.current.tag == "noon"
    assert orchestrator.current.cursor == 0


def test_second_day_transition_is_ignored_while_one_runs(
    orchestrator: TransitionOrchestrator,
    scheduler: TaskScheduler,
    display: RecordingDisplay,
) -> None:
    orchestrator.start_new_game()
    first = orchestrator.transition_between_days(
        orchestrator.create_scene("noon"), "Day 3"
    )
    second = orchestrator.transition_between_days(
        orchestrator.create_scene("build-up"), "Day 4"
    )

    assert first is not None
    assert second is None
    assert [args for args in display.calls_named("fade_to") if args[0]] == [
        (True, first.fade_ms)
    ]

    scheduler.drain()
    assert orchestrator.current.tag == "noon"
    assert [args[0] for args in display.calls_named("show_caption")] == ["Day 3"]
    assert orchestrator.phase is Phase.PLAYING


def test_climax_requested_mid_transition_is_refused_without_using_it_up(
    orchestrator: TransitionOrchestrator,
    scheduler: TaskScheduler,
) -> None:
    orchestrator.start_new_game()
    orchestrator.transition_between_days(orchestrator.create_scene("noon"), "Day 3")

    assert orchestrator.transition_to_climax(orchestrator.create_scene("coda")) is False

    scheduler.drain()
    assert orchestrator.current.tag == "noon"
    assert orchestrator.transition_to_climax(orchestrator.create_scene("coda")) is True
    scheduler.drain()
    assert orchestrator.phase is Phase.AWAITING_REVEAL


def test_locking_exit_plays_cue_and_triggers_memory_lock(
    orchestrator: TransitionOrchestrator,
    scheduler: TaskScheduler,
    audio: RecordingAudio,
) -> None:
    orchestrator.start_new_game()
    orchestrator.advance_current()
    orchestrator.advance_current()
    scheduler.drain()
    assert orchestrator.session.memory_lock.is_set() is False

    orchestrator.advance_current()

    assert orchestrator.session.memory_lock.is_set() is True
    assert ("glitch.wav", False, 1.0) in audio.history


def _play_to_climax(
    orchestrator: TransitionOrchestrator, scheduler: TaskScheduler
) -> None:
    orchestrator.start_new_game()
    for _ in range(3):
        orchestrator.advance_current()
        scheduler.drain()
    assert orchestrator.current.tag == "build-up"
    orchestrator.advance_current()
    scheduler.drain()


def test_climax_waits_for_one_more_input(
    orchestrator: TransitionOrchestrator,
    scheduler: TaskScheduler,
    display: RecordingDisplay,
    audio: RecordingAudio,
) -> None:
    _play_to_climax(orchestrator, scheduler)
    fades_in = display.calls_named("fade_to").count((False, 700))

    assert orchestrator.phase is Phase.AWAITING_REVEAL
    assert "empty.png" in [args[0] for args in display.calls_named("set_background")]
    assert display.frame.caption == CLIMAX_CAPTION
    assert display.frame.opaque is True
    assert display.frame.dialogue_visible is False
    assert display.frame.secondary_control_visible is False
    assert audio.playing is False
    assert orchestrator.current.tag == "build-up"
    assert orchestrator.input.enabled is True

    orchestrator.advance_current()
    assert orchestrator.phase is Phase.REVEALING
    assert orchestrator.current.tag == "coda"
    assert display.frame.opaque is True
    assert display.calls_named("fade_to")[-1] == (False, 700)

    orchestrator.advance_current()
    assert orchestrator.current.cursor == 0
    assert display.calls_named("fade_to").count((False, 700)) == fades_in + 1

    scheduler.drain()
    assert orchestrator.phase is Phase.PLAYING
    assert display.frame.opaque is False


def test_climax_gate_debounces_double_press(
    orchestrator: TransitionOrchestrator,
    scheduler: TaskScheduler,
    display: RecordingDisplay,
) -> None:
    _play_to_climax(orchestrator, scheduler)
    fades_in = display.calls_named("fade_to").count((False, 700))

    assert orchestrator.input.press() is True
    assert orchestrator.input.press() is False
    assert display.calls_named("fade_to").count((False, 700)) == fades_in + 1
    assert orchestrator.current.cursor == 0


def test_climax_cannot_be_started_twice(
    orchestrator: TransitionOrchestrator, scheduler: TaskScheduler
) -> None:
    _play_to_climax(orchestrator, scheduler)

    assert orchestrator.transition_to_climax(orchestrator.create_scene("coda")) is False
    assert orchestrator.phase is Phase.AWAITING_REVEAL


def test_ending_unlocks_story_after_prompt_delay(
    orchestrator: TransitionOrchestrator,
    clock: ManualClock,
    scheduler: TaskScheduler,
    display: RecordingDisplay,
) -> None:
    _play_to_climax(orchestrator, scheduler)
    orchestrator.advance_current()
    scheduler.drain()

    orchestrator.advance_current()
    orchestrator.advance_current()
    assert display.frame.caption == ENDING_CAPTION
    assert orchestrator.input.enabled is False
    assert orchestrator.is_story_unlocked() is False

    clock.advance(700)
    scheduler.run_due()
    assert display.frame.caption is None
    assert orchestrator.is_story_unlocked() is False

    clock.advance(3000)
    scheduler.run_due()
    assert orchestrator.is_story_unlocked() is True
    assert display.frame.end_prompt == END_PROMPT_LABEL
    assert orchestrator.phase is Phase.ENDED

    orchestrator.advance_current()
    assert orchestrator.phase is Phase.ENDED


def test_new_game_after_ending_resets_climax_but_keeps_flags(
    orchestrator: TransitionOrchestrator,
    scheduler: TaskScheduler,
    display: RecordingDisplay,
) -> None:
    _play_to_climax(orchestrator, scheduler)
    orchestrator.advance_current()
    scheduler.drain()
    orchestrator.advance_current()
    orchestrator.advance_current()
    scheduler.drain()
    assert orchestrator.phase is Phase.ENDED

    orchestrator.start_new_game()
    scheduler.drain()

    assert orchestrator.current.tag == "morning"
    assert orchestrator.phase is Phase.PLAYING
    assert orchestrator.input.enabled is True
    assert display.frame.opaque is False
    assert orchestrator.is_story_unlocked() is True
    assert orchestrator.session.memory_lock.is_set() is True


def test_failing_display_fade_still_completes_sequence(
    audio: RecordingAudio,
    chooser: ScriptedChoiceResolver,
    scheduler: TaskScheduler,
) -> None:
    class BrokenFadeDisplay(RecordingDisplay):
        def fade_to(self, opaque, duration_ms, on_complete=None):  # type: ignore[override]
            raise RuntimeError("no overlay")

    display = BrokenFadeDisplay(scheduler)
    orchestrator = TransitionOrchestrator(
        Stage(display, audio, chooser, scheduler),
        registry=build_registry(SCRIPTS),
        first_scene="morning",
    )
    orchestrator.start_new_game()
    orchestrator.advance_current()
    orchestrator.advance_current()
    scheduler.drain()

    assert orchestrator.current.tag == "noon"
    assert orchestrator.phase is Phase.PLAYING


def test_rejection_glitch_flashes_plays_cue_then_shows_notice(
    orchestrator: TransitionOrchestrator,
    clock: ManualClock,
    scheduler: TaskScheduler,
    display: RecordingDisplay,
    audio: RecordingAudio,
) -> None:
    orchestrator.reject_memory_access()

    assert display.calls_named("flash") == [(120,)]
    assert audio.history[-1][0].endswith("glitch_short.wav")
    assert display.frame.notice is None

    clock.advance(250)
    scheduler.run_due()
    assert display.frame.notice == "I don't want to remember this."
