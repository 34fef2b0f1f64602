"""Configuration helpers for running the narrative engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping


def _normalise_path(value: str | None) -> Path | None:
    if value is None:
        return None

    trimmed = value.strip()
    if not trimmed:
        return None

    return Path(trimmed).expanduser()


def _normalise_string(value: str | None, *, default: str) -> str:
    if value is None:
        return default

    trimmed = value.strip()
    return trimmed or default


def _parse_non_negative_int(value: str | None, *, name: str, default: int) -> int:
    if value is None:
        return default

    trimmed = value.strip()
    if not trimmed:
        return default

    try:
        parsed = int(trimmed)
    except ValueError as exc:
        raise ValueError(f"{name} must be a non-negative integer.") from exc
    if parsed < 0:
        raise ValueError(f"{name} must not be negative.")
    return parsed


@dataclass(frozen=True)
class TransitionTimings:
    """Durations (in milliseconds) used by the transition sequences."""

    same_day_fade_ms: int = 350
    cross_day_fade_ms: int = 700
    day_label_dwell_ms: int = 900
    same_day_duck_ratio: float = 0.8
    climax_fade_ms: int = 700
    interlude_fade_ms: int = 500
    ending_fade_ms: int = 700
    ending_prompt_delay_ms: int = 3000
    input_cooldown_ms: int = 300
    glitch_flash_ms: int = 120
    glitch_notice_delay_ms: int = 250

    def __post_init__(self) -> None:
        for name in (
            "same_day_fade_ms",
            "cross_day_fade_ms",
            "day_label_dwell_ms",
            "climax_fade_ms",
            "interlude_fade_ms",
            "ending_fade_ms",
            "ending_prompt_delay_ms",
            "input_cooldown_ms",
            "glitch_flash_ms",
            "glitch_notice_delay_ms",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if not 0.0 <= self.same_day_duck_ratio <= 1.0:
            raise ValueError("same_day_duck_ratio must be between 0 and 1")


@dataclass(frozen=True)
class EngineSettings:
    """Runtime settings for the engine and its front ends.

    Values are read from environment variables so the CLI and the HTTP play
    service can be configured without code changes. Empty strings are treated
    as if the variable was unset and paths are expanded to support ``~``.
    """

    save_dir: Path = Path("saves")
    asset_root: Path | None = None
    log_level: str = "WARNING"
    timings: TransitionTimings = field(default_factory=TransitionTimings)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        """Return settings populated from ``environ``.

        Args:
            environ: Optional mapping of environment variables. When omitted,
                :data:`os.environ` is used.
        """

        source = environ if environ is not None else os.environ

        save_dir = _normalise_path(source.get("SILENTCONVENT_SAVE_DIR")) or Path(
            "saves"
        )
        asset_root = _normalise_path(source.get("SILENTCONVENT_ASSET_ROOT"))
        log_level = _normalise_string(
            source.get("SILENTCONVENT_LOG_LEVEL"), default="WARNING"
        ).upper()
        cooldown = _parse_non_negative_int(
            source.get("SILENTCONVENT_INPUT_COOLDOWN_MS"),
            name="SILENTCONVENT_INPUT_COOLDOWN_MS",
            default=TransitionTimings.input_cooldown_ms,
        )

        return cls(
            save_dir=save_dir,
            asset_root=asset_root,
            log_level=log_level,
            timings=TransitionTimings(input_cooldown_ms=cooldown),
        )


__all__ = ["EngineSettings", "TransitionTimings"]
