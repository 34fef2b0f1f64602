"""Owner of the active scene and of every timed transition between scenes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping

from .collaborators import Stage
from .controls import TRANSITION, AdvanceInput
from .narrative_lock import NarrativeSession
from .scene import ExitKind, Scene, SceneState
from .settings import TransitionTimings
from .story import (
    CLIMAX_CAPTION,
    END_PROMPT_LABEL,
    ENDING_CAPTION,
    FIRST_SCENE,
    GLITCH_CUE,
    REJECTION_NOTICE,
    SCENE_REGISTRY,
)

logger = logging.getLogger(__name__)

SceneFactory = Callable[[], Scene]


class Phase(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    TRANSITIONING = "transitioning"
    AWAITING_REVEAL = "awaiting-reveal"
    REVEALING = "revealing"
    ENDED = "ended"


@dataclass(frozen=True)
class DayTransition:
    """Pacing chosen for one call to :meth:`transition_between_days`."""

    same_day: bool
    fade_ms: int
    original_volume: float
    ducked_volume: float


class TransitionOrchestrator:
    """Hold the single current scene and sequence swaps between scenes.

    Every multi-step sequence is a chain of scheduled callbacks. While one is
    in flight the advance input carries a ``transition`` hold and
    :meth:`advance_current` ignores input, so two sequences never overlap.
    Continuations belonging to a sequence that was superseded by a restored
    save are dropped.
    """

    def __init__(
        self,
        stage: Stage,
        *,
        session: NarrativeSession | None = None,
        registry: Mapping[str, SceneFactory] | None = None,
        first_scene: str = FIRST_SCENE,
        timings: TransitionTimings | None = None,
    ) -> None:
        self.stage = stage
        self.session = session if session is not None else NarrativeSession()
        self.registry: Mapping[str, SceneFactory] = (
            registry if registry is not None else SCENE_REGISTRY
        )
        self.first_scene = first_scene
        self.timings = timings or TransitionTimings()
        self.input = AdvanceInput(
            stage.display,
            stage.scheduler,
            self.advance_current,
            cooldown_ms=self.timings.input_cooldown_ms,
        )
        self._current: Scene | None = None
        self._phase = Phase.IDLE
        self._exiting: Scene | None = None
        self._final_pending: Scene | None = None
        self._climax_started = False
        self._sequence = 0
        self._volume_to_restore: float | None = None

    @property
    def current(self) -> Scene | None:
        return self._current

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def busy(self) -> bool:
        return self._phase in (Phase.TRANSITIONING, Phase.REVEALING)

    def is_story_unlocked(self) -> bool:
        return self.session.story_unlocked.is_set()

    def create_scene(self, tag: str) -> Scene:
        """Build a fresh scene for ``tag``.

        Raises:
            KeyError: If no scene is registered under ``tag``.
        """

        factory = self.registry.get(tag)
        if factory is None:
            raise KeyError(f"Unknown scene '{tag}'")
        return factory()

    def start_new_game(self) -> Scene:
        """Begin a fresh playthrough from the first scene."""

        self.session.started = True
        self._climax_started = False
        self._abandon_sequence()
        scene = self.create_scene(self.first_scene)
        self.load_scene(scene)
        return scene

    def load_scene(self, scene: Scene) -> None:
        """Make ``scene`` current, activate it and re-enable the advance input."""

        self._current = scene
        self._exiting = None
        logger.info("Loading scene: %s", scene.tag)
        scene.activate(self.stage)
        if not self.busy:
            self._phase = Phase.PLAYING
        self.input.enable()

    def resume_scene(
        self,
        scene: Scene,
        cursor: int,
        *,
        branch_resolved: bool = False,
        branch_choice: int | None = None,
        background: str | None = None,
    ) -> None:
        """Load ``scene`` and fast-forward it to a saved position.

        Any sequence still in flight is abandoned: its remaining steps no
        longer touch the scene that was restored.
        """

        self._abandon_sequence()
        self.load_scene(scene)
        if branch_resolved and scene.script.branch is not None:
            scene.replay_branch(branch_choice)
        scene.restore_cursor_to(cursor)
        if background is not None:
            self.stage.display.set_background(background)

    def advance_current(self) -> None:
        """React to one accepted advance input."""

        if self._phase is Phase.AWAITING_REVEAL:
            self._reveal_final()
            return
        if self.busy or self._phase is Phase.ENDED:
            logger.debug("Ignoring advance while %s", self._phase.value)
            return
        scene = self._current
        if scene is None:
            return

        state = scene.advance()
        if state is SceneState.EXHAUSTED and self._exiting is not scene:
            self._exit_scene(scene)

    def transition_between_days(
        self, next_scene: Scene, day_label: str
    ) -> DayTransition | None:
        """Fade out, show ``day_label``, swap in ``next_scene`` and fade back.

        Scenes on the same day get the short fade and a volume duck; scenes on
        different days get the long fade at full volume. Returns ``None``
        without scheduling anything while another sequence is running.
        """

        if self.busy:
            logger.warning(
                "Ignoring transition to %s while %s", next_scene.tag, self._phase.value
            )
            return None

        current = self._current
        same_day = current is not None and current.day == next_scene.day
        fade_ms = (
            self.timings.same_day_fade_ms if same_day else self.timings.cross_day_fade_ms
        )
        original_volume = self.stage.master_volume()
        ducked_volume = (
            max(0.0, original_volume * self.timings.same_day_duck_ratio)
            if same_day
            else original_volume
        )
        plan = DayTransition(same_day, fade_ms, original_volume, ducked_volume)
        logger.info(
            "Transition to %s (%s, %dms)",
            next_scene.tag,
            "same day" if same_day else "new day",
            fade_ms,
        )

        token = self._begin_sequence()
        display = self.stage.display
        audio = self.stage.audio

        def _on_opaque() -> None:
            if same_day:
                self._volume_to_restore = original_volume
                audio.set_master_volume(ducked_volume)
            audio.stop()
            display.show_caption(day_label)
            self.stage.scheduler.call_later(
                self.timings.day_label_dwell_ms,
                self._continuation(token, _on_dwell_elapsed),
                name="day-label-dwell",
            )

        def _on_dwell_elapsed() -> None:
            display.hide_caption()
            self.load_scene(next_scene)
            self.stage.fade(False, fade_ms, self._continuation(token, _on_clear))

        def _on_clear() -> None:
            self._restore_volume()
            self._end_sequence()

        self.stage.fade(True, fade_ms, self._continuation(token, _on_opaque))
        return plan

    def transition_to_climax(
        self, final_scene: Scene, caption: str = CLIMAX_CAPTION
    ) -> bool:
        """Fade to black on ``caption`` and wait for one more advance.

        The next advance input loads ``final_scene`` while the screen is still
        black and then fades back in. Returns ``False`` if the climax was
        already started in this playthrough or another sequence is still
        running.
        """

        if self.busy:
            logger.warning("Ignoring climax request while %s", self._phase.value)
            return False
        if self._climax_started:
            logger.warning("Climax already started; ignoring second request")
            return False
        self._climax_started = True
        token = self._begin_sequence()
        display = self.stage.display

        def _on_opaque() -> None:
            self.stage.audio.stop()
            display.show_caption(caption)
            display.hide_dialogue()
            display.set_secondary_control_visible(False)
            self._final_pending = final_scene
            self._phase = Phase.AWAITING_REVEAL
            self.input.release(TRANSITION)

        self.stage.fade(
            True, self.timings.climax_fade_ms, self._continuation(token, _on_opaque)
        )
        return True

    def reject_memory_access(self) -> None:
        """Play the glitch shown when a locked memory is asked for."""

        logger.info("Load refused: memory is locked")
        self.stage.display.flash(self.timings.glitch_flash_ms)
        self.stage.audio.play(GLITCH_CUE, False, 1.0)
        self.stage.scheduler.call_later(
            self.timings.glitch_notice_delay_ms,
            lambda: self.stage.display.show_notice(REJECTION_NOTICE),
            name="memory-glitch-notice",
        )

    def _reveal_final(self) -> None:
        final_scene = self._final_pending
        self._final_pending = None
        if final_scene is None:
            self._phase = Phase.PLAYING
            return
        token = self._begin_sequence(phase=Phase.REVEALING)
        self.stage.display.hide_caption()
        self.load_scene(final_scene)
        self.stage.fade(
            False,
            self.timings.climax_fade_ms,
            self._continuation(token, self._end_sequence),
        )

    def _exit_scene(self, scene: Scene) -> None:
        self._exiting = scene
        scene_exit = scene.exit
        logger.info("Scene %s finished (%s)", scene.tag, scene_exit.kind.value)
        if scene_exit.cue is not None:
            self.stage.audio.play(scene_exit.cue, False, 1.0)
        if scene_exit.locks_memory:
            self.session.memory_lock.trigger()

        if scene_exit.kind is ExitKind.CUT:
            self.load_scene(self.create_scene(scene_exit.target or ""))
        elif scene_exit.kind is ExitKind.DAY:
            self.transition_between_days(
                self.create_scene(scene_exit.target or ""), scene_exit.label or ""
            )
        elif scene_exit.kind is ExitKind.CLIMAX:
            final_scene = self.create_scene(scene_exit.target or "")
            self._play_interlude(
                scene_exit.interlude_background,
                lambda: self.transition_to_climax(final_scene),
            )
        else:
            self._play_ending()

    def _play_interlude(
        self, background: str | None, then: Callable[[], object]
    ) -> None:
        token = self._begin_sequence()
        fade_ms = self.timings.interlude_fade_ms

        def _on_opaque() -> None:
            if background is not None:
                self.stage.display.set_background(background)
            self.stage.fade(False, fade_ms, self._continuation(token, _on_clear))

        def _on_clear() -> None:
            self._end_sequence()
            then()

        self.stage.fade(True, fade_ms, self._continuation(token, _on_opaque))

    def _play_ending(self) -> None:
        token = self._begin_sequence()
        display = self.stage.display
        display.show_caption(ENDING_CAPTION)
        self.input.disable()

        def _on_opaque() -> None:
            display.hide_caption()
            self.stage.scheduler.call_later(
                self.timings.ending_prompt_delay_ms,
                self._continuation(token, _on_prompt),
                name="ending-prompt",
            )

        def _on_prompt() -> None:
            self.session.story_unlocked.trigger()
            display.show_end_prompt(END_PROMPT_LABEL)
            self._phase = Phase.ENDED
            self.input.release(TRANSITION)

        self.stage.fade(
            True, self.timings.ending_fade_ms, self._continuation(token, _on_opaque)
        )

    def _abandon_sequence(self) -> None:
        interrupted = self._phase not in (Phase.IDLE, Phase.PLAYING)
        self._sequence += 1
        self._final_pending = None
        self._phase = Phase.PLAYING
        self._restore_volume()
        self.input.release(TRANSITION)
        display = self.stage.display
        display.hide_caption()
        display.set_overlay_alpha(0.0)
        display.set_secondary_control_visible(True)
        if interrupted:
            # A fade that is still running settles no later than this one.
            self.stage.fade(False, self._longest_fade_ms(), lambda: None)

    def _begin_sequence(self, phase: Phase = Phase.TRANSITIONING) -> int:
        self._sequence += 1
        self._phase = phase
        self.input.hold(TRANSITION)
        return self._sequence

    def _end_sequence(self) -> None:
        self._phase = Phase.PLAYING
        self.input.release(TRANSITION)

    def _continuation(self, token: int, step: Callable[[], None]) -> Callable[[], None]:
        def _run() -> None:
            if token != self._sequence:
                logger.debug("Dropping stale transition step %s", step.__name__)
                return
            step()

        return _run

    def _longest_fade_ms(self) -> int:
        timings = self.timings
        return max(
            timings.same_day_fade_ms,
            timings.cross_day_fade_ms,
            timings.climax_fade_ms,
            timings.interlude_fade_ms,
            timings.ending_fade_ms,
        )

    def _restore_volume(self) -> None:
        if self._volume_to_restore is not None:
            self.stage.audio.set_master_volume(self._volume_to_restore)
            self._volume_to_restore = None


__all__ = ["DayTransition", "Phase", "TransitionOrchestrator"]
