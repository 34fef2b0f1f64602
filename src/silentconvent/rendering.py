"""Detect who is speaking in a script line and draw it on a display."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Tuple

from .collaborators import LEFT, RIGHT, Display

DEFAULT_SPEAKER = "Agnes"

_SINGLE_WORD_NAME = re.compile(r"^[A-Za-zÀ-ÖØ-öø-ÿ]+$")


@dataclass(frozen=True)
class RenderedLine:
    """A script line split into its speaker (if any) and message."""

    text: str
    speaker: str | None = None

    @property
    def is_speech(self) -> bool:
        return self.speaker is not None

    def speakers(self) -> Tuple[str, ...]:
        """Return the individual names in a ``"A, B"`` or ``"A | B"`` speaker."""

        if self.speaker is None:
            return ()
        for separator in (",", "|"):
            if separator in self.speaker:
                parts = [part.strip() for part in self.speaker.split(separator)]
                return tuple(part for part in parts[:2] if part)
        return (self.speaker.strip(),)


def classify_line(raw: str) -> RenderedLine:
    """Work out how ``raw`` should be presented.

    Recognised formats, in order:

    * ``[Name] message`` - explicit speaker in brackets.
    * ``Name: message`` - a single word made of letters before the colon.
    * any line containing ``"`` - quoted speech, spoken by :data:`DEFAULT_SPEAKER`.
    * anything else is plain narrative.
    """

    text = raw.strip()

    if text.startswith("[") and "]" in text:
        end = text.index("]")
        return RenderedLine(text=text[end + 1 :].strip(), speaker=text[1:end].strip())

    colon = text.find(":")
    if colon > 0:
        maybe_name = text[:colon].strip()
        if _SINGLE_WORD_NAME.match(maybe_name):
            return RenderedLine(text=text[colon + 1 :].strip(), speaker=maybe_name)

    if '"' in text:
        return RenderedLine(text=text.replace('"', "").strip(), speaker=DEFAULT_SPEAKER)

    return RenderedLine(text=text)


def render_line(display: Display, raw: str) -> RenderedLine:
    """Show ``raw`` on ``display`` and return how it was classified.

    Plain narrative clears the speaker box and any portraits left over from
    earlier speech. Speech shows the speaker portrait(s): a single speaker
    on the right, or two speakers with the first one (left) speaking and the
    second one (right) dimmed.
    """

    line = classify_line(raw)
    if not line.is_speech:
        display.clear_speaker_line()
        display.clear_portraits()
        display.show_plain_line(line.text)
        return line

    display.show_speaker_line(line.speaker or DEFAULT_SPEAKER, line.text)
    names = line.speakers()
    if len(names) >= 2:
        display.show_speaker_portrait(LEFT, names[0], False)
        display.show_speaker_portrait(RIGHT, names[1], True)
    elif names:
        display.show_speaker_portrait(RIGHT, names[0], False)
    return line


__all__ = ["DEFAULT_SPEAKER", "RenderedLine", "classify_line", "render_line"]
