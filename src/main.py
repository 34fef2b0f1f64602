"""Command-line entry point for playing Silent Convent in a terminal."""

from __future__ import annotations

import argparse
import logging
import time
from pathlib import Path
from typing import Callable, Sequence, TextIO

from silentconvent import (
    AssetLocator,
    ChoiceResolver,
    EngineSettings,
    Game,
    LoadStatus,
    ManualClock,
    Phase,
    RecordingAudio,
    RecordingDisplay,
    TaskScheduler,
    build_game,
)

logger = logging.getLogger(__name__)

InputFn = Callable[[str], str]
OutputFn = Callable[[str], None]


class TranscriptLogger:
    """Structured writer that records CLI transcripts for debugging."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._turn = 0

    def log_player_input(self, text: str) -> None:
        """Record the player's latest command."""

        self._turn += 1
        formatted = text if text else "(empty)"
        self._write("")
        self._write(f"=== Turn {self._turn} ===")
        self._write(f"Player input: {formatted}")
        self._stream.flush()

    def log_output(self, text: str) -> None:
        """Record one line shown to the player."""

        for line in text.splitlines() or ("",):
            self._write(f"  {line}")
        self._stream.flush()

    def _write(self, text: str) -> None:
        self._stream.write(f"{text}\n")


class TerminalDisplay(RecordingDisplay):
    """Recording display that also prints what the player would see."""

    def __init__(
        self,
        scheduler: TaskScheduler,
        emit: OutputFn,
        *,
        assets: AssetLocator | None = None,
    ) -> None:
        super().__init__(scheduler, assets=assets)
        self._emit = emit

    def show_plain_line(self, text: str) -> None:
        super().show_plain_line(text)
        self._emit(text)

    def show_speaker_line(self, name: str, text: str) -> None:
        super().show_speaker_line(name, text)
        self._emit(f"{name}: {text}")

    def show_caption(self, text: str) -> None:
        super().show_caption(text)
        self._emit(f"\n    ~ {text} ~\n")

    def flash(self, duration_ms: int) -> None:
        super().flash(duration_ms)
        self._emit("*")

    def show_notice(self, text: str) -> None:
        super().show_notice(text)
        self._emit(f"[{text}]")

    def show_end_prompt(self, label: str) -> None:
        super().show_end_prompt(label)
        self._emit(f"\n[{label}]")


class TerminalChoiceResolver(ChoiceResolver):
    """Ask the player to pick an option by number; blank input cancels."""

    def __init__(self, input_fn: InputFn, emit: OutputFn) -> None:
        self._input = input_fn
        self._emit = emit

    def present_choices(self, prompt: str, options: Sequence[str]) -> int | None:
        self._emit(f"\n{prompt}")
        for index, option in enumerate(options, start=1):
            self._emit(f"  {index}. {option}")
        while True:
            try:
                answer = self._input("choose> ").strip()
            except EOFError:
                return None
            if not answer:
                return None
            if answer.isdigit() and 1 <= int(answer) <= len(options):
                return int(answer) - 1
            self._emit(f"Please enter a number between 1 and {len(options)}.")


_MENU_HELP = (
    ("play", "Start a new game"),
    ("saves", "List remembered moments"),
    ("load <name>", "Return to a remembered moment"),
    ("story", "Read the story review (unlocked at the ending)"),
    ("quit", "Leave"),
)

_GAME_HELP = (
    ("next", "Continue (pressing Enter does the same)"),
    ("save <name> [note]", "Remember this moment"),
    ("load <name>", "Return to a remembered moment"),
    ("saves", "List remembered moments"),
    ("delete <name>", "Forget a remembered moment"),
    ("status", "Show where you are"),
    ("help", "Show this overview"),
    ("quit", "Leave"),
)


def settle(game: Game, *, realtime: bool = False) -> int:
    """Run pending presentation steps; sleep through their delays if ``realtime``."""

    scheduler = game.scheduler
    if not realtime:
        return scheduler.drain()

    ran = 0
    while True:
        due = scheduler.next_due()
        if due is None:
            return ran
        delay_ms = due - scheduler.now()
        if delay_ms > 0:
            time.sleep(delay_ms / 1000.0)
        ran += scheduler.run_due()


def run_cli(
    game: Game,
    *,
    input_fn: InputFn = input,
    emit: OutputFn = print,
    realtime: bool = False,
    transcript_logger: TranscriptLogger | None = None,
) -> None:
    """Drive a small interactive loop using ``input``/``print``."""

    def _print_help(entries: Sequence[tuple[str, str]]) -> None:
        emit("")
        for command, description in entries:
            emit(f"  {command:<20} {description}")
        emit("")

    def _print_saves() -> None:
        names = game.list_saves()
        if names:
            emit("Remembered: " + ", ".join(names))
        else:
            emit("Nothing remembered yet.")

    def _load(name: str) -> bool:
        if not name:
            emit("Usage: load <name>")
            return False
        result = game.load(name)
        settle(game, realtime=realtime)
        if result.status is LoadStatus.LOADED:
            emit(f"Returned to '{result.name}'.")
            return True
        if result.status is LoadStatus.NOT_FOUND:
            emit(f"No memory named '{name}' was found.")
        elif result.status is LoadStatus.CORRUPT:
            emit(f"The memory '{name}' cannot be restored.")
        return False

    emit("Silent Convent")
    emit("Type 'help' for a command overview.")
    in_game = False

    while True:
        prompt = "> " if in_game else "menu> "
        try:
            raw = input_fn(prompt)
        except EOFError:
            emit("")
            break
        player_input = raw.strip()
        if transcript_logger is not None:
            transcript_logger.log_player_input(player_input)

        command, _, argument = player_input.partition(" ")
        command = command.lower()
        argument = argument.strip()

        if command in ("quit", "q"):
            emit("Goodbye.")
            break

        if command == "help":
            _print_help(_GAME_HELP if in_game else _MENU_HELP)
            continue

        if command == "saves":
            _print_saves()
            continue

        if command == "load":
            if _load(argument):
                in_game = True
            continue

        if not in_game:
            if command == "play":
                game.new_game()
                settle(game, realtime=realtime)
                in_game = True
            elif command == "story":
                text = game.review_story()
                if text is None:
                    emit("This is revealed at the ending.")
                else:
                    emit(text)
            else:
                emit("Type 'play' to begin or 'help' for options.")
            continue

        if command in ("", "next", "n"):
            if not game.press_advance():
                logger.debug("Advance ignored")
            settle(game, realtime=realtime)
        elif command == "save":
            name, _, note = argument.partition(" ")
            if not name:
                emit("Usage: save <name> [note]")
                continue
            stored = game.save(name, note.strip() or None)
            if stored is None:
                emit(f"Could not remember '{name}'.")
            else:
                emit(f"Remembered as '{stored}'.")
        elif command == "delete":
            if game.delete_save(argument):
                emit(f"Forgot '{argument}'.")
            else:
                emit(f"No memory named '{argument}' was found.")
        elif command == "status":
            status = game.status()
            emit(
                f"Scene: {status.scene} (day {status.day}), "
                f"line {status.cursor + 1} of {status.line_count}"
            )
            if status.memory_locked:
                emit("Memory: broken")
        else:
            emit("Unknown command. Type 'help' for options.")
            continue

        if game.orchestrator.phase is Phase.ENDED:
            in_game = False


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Silent Convent")
    parser.add_argument(
        "--save-dir",
        type=Path,
        help=(
            "Directory used to store saves. "
            "Defaults to SILENTCONVENT_SAVE_DIR or ./saves."
        ),
    )
    parser.add_argument(
        "--asset-root",
        type=Path,
        help="Directory containing the assets/ tree; missing files are reported.",
    )
    parser.add_argument(
        "--realtime",
        action="store_true",
        help="Wait through fades and pauses instead of skipping them.",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        help="Logging level for diagnostics (default: SILENTCONVENT_LOG_LEVEL).",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Path to a transcript log capturing player input and output.",
    )
    return parser.parse_args(argv)


def main(
    argv: Sequence[str] | None = None,
    *,
    input_fn: InputFn = input,
    emit: OutputFn = print,
) -> None:
    """Start the game."""

    args = _parse_args(argv)
    env_settings = EngineSettings.from_env()
    settings = EngineSettings(
        save_dir=args.save_dir or env_settings.save_dir,
        asset_root=args.asset_root or env_settings.asset_root,
        log_level=(args.log_level or env_settings.log_level).upper(),
        timings=env_settings.timings,
    )
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )

    transcript_logger: TranscriptLogger | None = None
    log_handle: TextIO | None = None
    try:
        if args.log_file is not None:
            args.log_file.parent.mkdir(parents=True, exist_ok=True)
            log_handle = args.log_file.open("a", encoding="utf-8")
            transcript_logger = TranscriptLogger(log_handle)

        def _emit(text: str) -> None:
            emit(text)
            if transcript_logger is not None:
                transcript_logger.log_output(text)

        scheduler = TaskScheduler(None if args.realtime else ManualClock())
        assets = AssetLocator(settings.asset_root)
        game = build_game(
            settings,
            display=TerminalDisplay(scheduler, _emit, assets=assets),
            audio=RecordingAudio(assets=assets),
            chooser=TerminalChoiceResolver(input_fn, _emit),
            scheduler=scheduler,
        )
        run_cli(
            game,
            input_fn=input_fn,
            emit=_emit,
            realtime=args.realtime,
            transcript_logger=transcript_logger,
        )
    finally:
        if log_handle is not None:
            log_handle.close()


if __name__ == "__main__":
    main()
