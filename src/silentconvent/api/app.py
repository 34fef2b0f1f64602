"""FastAPI application exposing a headless play session over HTTP."""

from __future__ import annotations

import logging
import threading

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from ..collaborators import RecordingDisplay, ScriptedChoiceResolver
from ..game import Game, build_game
from ..persistence import LoadStatus
from ..settings import EngineSettings

logger = logging.getLogger(__name__)


class PortraitResource(BaseModel):
    """Portrait currently shown on one side of the stage."""

    character: str
    dimmed: bool


class FrameResource(BaseModel):
    """What a player would currently see on screen."""

    background: str | None = None
    line: str | None = None
    speaker: str | None = None
    speaker_text: str | None = None
    portraits: dict[str, PortraitResource] = Field(default_factory=dict)
    caption: str | None = None
    dialogue_visible: bool = True
    overlay_alpha: float = Field(default=0.0, ge=0.0, le=1.0)
    opaque: bool = False
    notice: str | None = None
    end_prompt: str | None = None
    secondary_control_visible: bool = True
    advance_enabled: bool = True


class BranchResource(BaseModel):
    """Choice the next advance will present."""

    prompt: str
    options: list[str] = Field(default_factory=list)


class SessionStateResponse(BaseModel):
    """Snapshot of the play session returned by every session endpoint."""

    started: bool
    scene: str | None = None
    day: int | None = None
    cursor: int = Field(default=0, ge=0)
    line_count: int = Field(default=0, ge=0)
    line: str | None = None
    phase: str
    memory_locked: bool
    story_unlocked: bool
    pending_branch: BranchResource | None = None
    accepted: bool | None = Field(
        None,
        description="Whether the advance input was accepted; omitted for reads.",
    )
    frame: FrameResource


class AdvanceRequest(BaseModel):
    """Request payload for pressing the advance control."""

    choice: int | None = Field(
        None,
        ge=0,
        description=(
            "Option index to pick when this advance opens a branch point. "
            "Omit to cancel the choice."
        ),
    )


class SaveRequest(BaseModel):
    """Request payload for saving the current position."""

    name: str = Field(..., min_length=1)
    note: str | None = None


class SaveResponse(BaseModel):
    name: str


class SaveListResponse(BaseModel):
    saves: list[str] = Field(default_factory=list)


class StoryResponse(BaseModel):
    text: str


class PlaySession:
    """Own one :class:`Game` driven by HTTP requests.

    Scheduled presentation steps are pumped on every request: against the
    wall clock by default, or all at once when ``skip_delays`` is set.
    """

    def __init__(self, game: Game, *, skip_delays: bool = False) -> None:
        self.game = game
        self.skip_delays = skip_delays
        self.lock = threading.RLock()

    @classmethod
    def from_settings(
        cls, settings: EngineSettings, *, skip_delays: bool = False
    ) -> "PlaySession":
        return cls(build_game(settings), skip_delays=skip_delays)

    @property
    def display(self) -> RecordingDisplay:
        display = self.game.stage.raw_display
        if not isinstance(display, RecordingDisplay):
            raise RuntimeError("play sessions require a recording display")
        return display

    @property
    def chooser(self) -> ScriptedChoiceResolver:
        chooser = self.game.stage.chooser
        if not isinstance(chooser, ScriptedChoiceResolver):
            raise RuntimeError("play sessions require a scripted choice resolver")
        return chooser

    def pump(self) -> int:
        if self.skip_delays:
            return self.game.scheduler.drain()
        return self.game.scheduler.run_due()

    def advance(self, choice: int | None) -> bool:
        """Press advance, answering the branch point it opens with ``choice``."""

        status = self.game.status()
        branch = status.pending_branch
        if choice is not None:
            if branch is None:
                raise LookupError("No choice is pending.")
            if choice >= len(branch.options):
                raise ValueError(
                    f"Choice {choice} is out of range for {len(branch.options)} options."
                )
        self.chooser.clear()
        if branch is not None:
            self.chooser.queue(choice)
        accepted = self.game.press_advance()
        self.chooser.clear()
        return accepted

    def state(self, *, accepted: bool | None = None) -> SessionStateResponse:
        status = self.game.status()
        frame = self.display.frame
        speaker, speaker_text = frame.speaker or (None, None)
        branch = status.pending_branch
        return SessionStateResponse(
            started=self.game.session.started,
            scene=status.scene,
            day=status.day,
            cursor=status.cursor,
            line_count=status.line_count,
            line=status.line,
            phase=status.phase.value,
            memory_locked=status.memory_locked,
            story_unlocked=status.story_unlocked,
            pending_branch=(
                BranchResource(prompt=branch.prompt, options=list(branch.labels()))
                if branch is not None
                else None
            ),
            accepted=accepted,
            frame=FrameResource(
                background=frame.background,
                line=frame.plain_line,
                speaker=speaker,
                speaker_text=speaker_text,
                portraits={
                    side: PortraitResource(character=ref, dimmed=dimmed)
                    for side, (ref, dimmed) in frame.portraits.items()
                },
                caption=frame.caption,
                dialogue_visible=frame.dialogue_visible,
                overlay_alpha=frame.overlay_alpha,
                opaque=frame.opaque,
                notice=frame.notice,
                end_prompt=frame.end_prompt,
                secondary_control_visible=frame.secondary_control_visible,
                advance_enabled=frame.advance_enabled,
            ),
        )


_LOAD_FAILURE_STATUS = {
    LoadStatus.NOT_FOUND: 404,
    LoadStatus.CORRUPT: 422,
    LoadStatus.REJECTED: 423,
}


def create_app(
    settings: EngineSettings | None = None,
    *,
    play_session: PlaySession | None = None,
) -> FastAPI:
    """Create a FastAPI app serving a single play session."""

    resolved_settings = settings or EngineSettings.from_env()
    session = play_session or PlaySession.from_settings(resolved_settings)

    tags_metadata = [
        {
            "name": "Session",
            "description": "Start a playthrough and advance through its scenes.",
        },
        {
            "name": "Saves",
            "description": "Save, list, restore and delete remembered positions.",
        },
        {
            "name": "Story",
            "description": "Content review unlocked by reaching the ending.",
        },
    ]

    app = FastAPI(
        title="Silent Convent Play API",
        version="0.1.0",
        description=(
            "HTTP API driving a headless Silent Convent playthrough. Every "
            "response carries the frame a player would currently see."
        ),
        openapi_tags=tags_metadata,
    )
    app.state.play_session = session

    @app.post("/api/session", response_model=SessionStateResponse, tags=["Session"])
    def start_session() -> SessionStateResponse:
        with session.lock:
            session.game.new_game()
            session.pump()
            return session.state()

    @app.get("/api/session", response_model=SessionStateResponse, tags=["Session"])
    def get_session() -> SessionStateResponse:
        with session.lock:
            session.pump()
            return session.state()

    @app.post(
        "/api/session/advance",
        response_model=SessionStateResponse,
        tags=["Session"],
    )
    def advance_session(
        payload: AdvanceRequest | None = None,
    ) -> SessionStateResponse:
        with session.lock:
            if session.game.current is None:
                raise HTTPException(status_code=409, detail="No game in progress.")
            session.pump()
            choice = payload.choice if payload is not None else None
            try:
                accepted = session.advance(choice)
            except LookupError as exc:
                raise HTTPException(status_code=409, detail=str(exc)) from exc
            except ValueError as exc:
                raise HTTPException(status_code=422, detail=str(exc)) from exc
            session.pump()
            return session.state(accepted=accepted)

    @app.get("/api/saves", response_model=SaveListResponse, tags=["Saves"])
    def list_saves() -> SaveListResponse:
        with session.lock:
            return SaveListResponse(saves=session.game.list_saves())

    @app.post(
        "/api/saves",
        response_model=SaveResponse,
        status_code=201,
        tags=["Saves"],
    )
    def create_save(payload: SaveRequest) -> SaveResponse:
        with session.lock:
            if session.game.current is None:
                raise HTTPException(status_code=409, detail="No game in progress.")
            stored = session.game.save(payload.name, payload.note)
            if stored is None:
                raise HTTPException(
                    status_code=400, detail=f"Could not save under '{payload.name}'."
                )
            return SaveResponse(name=stored)

    @app.post(
        "/api/saves/{name}/load",
        response_model=SessionStateResponse,
        tags=["Saves"],
    )
    def load_save(name: str) -> SessionStateResponse:
        with session.lock:
            session.pump()
            result = session.game.load(name)
            if not result.ok:
                logger.info("Load of %s failed: %s", name, result.status.value)
                session.pump()
                raise HTTPException(
                    status_code=_LOAD_FAILURE_STATUS[result.status],
                    detail=result.message or f"Could not load '{name}'.",
                )
            session.pump()
            return session.state()

    @app.delete("/api/saves/{name}", status_code=204, tags=["Saves"])
    def delete_save(name: str) -> None:
        with session.lock:
            if not session.game.delete_save(name):
                raise HTTPException(status_code=404, detail="Save not found.")

    @app.get("/api/story", response_model=StoryResponse, tags=["Story"])
    def get_story() -> StoryResponse:
        with session.lock:
            text = session.game.review_story()
            if text is None:
                raise HTTPException(
                    status_code=403, detail="The story is revealed at the ending."
                )
            return StoryResponse(text=text)

    return app


__all__ = [
    "AdvanceRequest",
    "FrameResource",
    "PlaySession",
    "SaveRequest",
    "SessionStateResponse",
    "create_app",
]
