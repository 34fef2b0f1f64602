"""The Silent Convent script: scene content, registry and review text."""

from __future__ import annotations

from types import MappingProxyType
from typing import Callable, Dict, Mapping, Tuple

from .scene import (
    BranchOption,
    BranchPoint,
    ExitKind,
    Scene,
    SceneExit,
    SceneScript,
    validate_scripts,
)

FIRST_SCENE = "day-one"

GLITCH_CUE = "assets/audio/glitch_short.wav"
CLIMAX_CAPTION = "I don't want to remember this"
REJECTION_NOTICE = "I don't want to remember this."
ENDING_CAPTION = "The game ends in a long breath."
END_PROMPT_LABEL = "Main Menu"


DAY_ONE = SceneScript(
    tag="day-one",
    day=1,
    lines=(
        "Morning light spills across the monastery garden.",
        "Six young sisters sit together among the flowers.",
        "They laugh quietly. The sound feels warm.",
        "They lie on the grass in a circle, watching clouds drift.",
        "No one wants to move.",
        'Thérèse: "I remember my mother\'s lullaby."',
    ),
    background="assets/images/bg_garden_day_calm.PNG",
    track="assets/audio/bgm_day_calm.wav",
    branch=BranchPoint(
        cursor=1,
        prompt="What should she ask?",
        options=(
            BranchOption(
                "Ask about literature",
                "She asks about books; the sister smiles about a favorite poet.",
            ),
            BranchOption(
                "Ask about science",
                "She asks about stars; the sister speaks of experiments she once read about.",
            ),
            BranchOption(
                "Ask about faith",
                "She asks about faith; the sister hums a hymn and looks at the sky.",
            ),
        ),
        overlay_alpha=0.45,
    ),
    exit=SceneExit(ExitKind.CUT, target="dinner"),
)

DINNER = SceneScript(
    tag="dinner",
    day=1,
    lines=(
        "Dinner is served.",
        "The food smells unfamiliar.",
        "No one speaks.",
        "A fork scrapes against a plate.",
        'Beatrice: "Please be quiet."',
        'Helena: "Your voice is driving me insane."',
    ),
    background="assets/images/bg_dining_calm.PNG",
    track="assets/audio/ambience_dinner.wav",
    track_volume=0.5,
    exit=SceneExit(ExitKind.DAY, target="day-two", label="Day 2"),
)

DAY_TWO = SceneScript(
    tag="day-two",
    day=2,
    lines=(
        "Only five sisters gather in the garden.",
        "The space where one should be is ignored.",
        "Someone mentions the weather.",
        "Someone laughs too loudly.",
        "Everything is normal.",
    ),
    background="assets/images/bg_garden_day_calm.PNG",
    track="assets/audio/bgm_day_calm.wav",
    exit=SceneExit(ExitKind.DAY, target="day-three", label="Day 3"),
)

DAY_THREE = SceneScript(
    tag="day-three",
    day=3,
    lines=(
        "Four sisters sit at breakfast.",
        "Someone keeps repeating the same prayer.",
        "No one asks where the others are.",
        "A chair scrapes loudly.",
        'Agnes: "Please stop."',
        'Agnes: "Please stop talking."',
    ),
    background="assets/images/bg_dining_tense.PNG",
    track="assets/audio/bgm_day_unease.wav",
    track_volume=0.5,
    branch=BranchPoint(
        cursor=2,
        prompt="She is already on edge. What should she do?",
        options=(
            BranchOption(
                "She should speak.",
                "She whispers about a girl who always counted to six.",
            ),
            BranchOption(
                "She should stay silent.",
                "Silence stretches. Their breath fills the space.",
            ),
        ),
        cancel_line="Silence stretches. Their breath fills the space.",
        portrait="Lucille",
        overlay_alpha=0.35,
    ),
    exit=SceneExit(ExitKind.DAY, target="day-four", label="Day 4"),
)

DAY_FOUR = SceneScript(
    tag="day-four",
    day=4,
    lines=(
        "Three plates are set at dinner.",
        "The food smells wrong.",
        "No one touches it.",
        "Breathing feels loud.",
        'Lucille: "Your chewing is unbearable."',
        "Silence answers back.",
    ),
    background="assets/images/bg_dining_tense.PNG",
    track="assets/audio/bgm_day_unease.wav",
    track_volume=0.6,
    exit=SceneExit(ExitKind.DAY, target="day-five", label="Day 5"),
)

DAY_FIVE = SceneScript(
    tag="day-five",
    day=5,
    lines=(
        "Two sisters walk the hallway.",
        "One speaks. The other nods.",
        "Footsteps echo where none should be.",
        "Someone laughs.",
        'Miriam: "We\'ve always been this way."',
    ),
    background="assets/images/bg_bedroom_calm.PNG",
    track="assets/audio/ambience_monastery.wav",
    exit=SceneExit(
        ExitKind.DAY,
        target="day-six",
        label="Day 6",
        cue=GLITCH_CUE,
        locks_memory=True,
    ),
)

DAY_SIX = SceneScript(
    tag="day-six",
    day=6,
    lines=(
        "One plate.",
        "One chair.",
        "The room feels too large.",
        "The walls breathe.",
        "My heartbeat rises.",
        "Too high.",
        "Too loud.",
    ),
    background="assets/images/bg_bedroom_tense.PNG",
    track="assets/audio/highpitch.wav",
    flash_ms=1500,
    exit=SceneExit(
        ExitKind.CLIMAX,
        target="final",
        interlude_background="assets/images/bg_empty_final.PNG",
    ),
)

FINAL = SceneScript(
    tag="final",
    day=6,
    lines=(
        "There was never a convent.",
        "There was never six.",
        "Only one girl.",
        "Nineteen years old.",
        "Her parents never returned home.",
        "The institution was quiet.",
        "Too quiet.",
        "So she made others.",
        "So she wouldn’t be alone.",
        "She called them sisters.",
        "She called it faith.",
        "She called it home.",
    ),
    background="assets/images/bg_empty_final.PNG",
    presentation="caption",
    stops_audio=True,
    exit=SceneExit(ExitKind.ENDING),
)

SCRIPTS: Tuple[SceneScript, ...] = (
    DAY_ONE,
    DINNER,
    DAY_TWO,
    DAY_THREE,
    DAY_FOUR,
    DAY_FIVE,
    DAY_SIX,
    FINAL,
)


def _factory(script: SceneScript) -> Callable[[], Scene]:
    def _build() -> Scene:
        return Scene(script)

    _build.__name__ = f"build_{script.tag.replace('-', '_')}"
    return _build


def build_registry(
    scripts: Tuple[SceneScript, ...] = SCRIPTS,
) -> Mapping[str, Callable[[], Scene]]:
    """Map each scene tag to a zero-argument factory for that scene."""

    validate_scripts(scripts)
    registry: Dict[str, Callable[[], Scene]] = {
        script.tag: _factory(script) for script in scripts
    }
    return MappingProxyType(registry)


SCENE_REGISTRY: Mapping[str, Callable[[], Scene]] = build_registry()


STORY_REVIEW_TEXT = """The Monastery Without Doors

The monastery stood where the road ended, surrounded by fields that bent gently in the wind. Its walls were pale stone, warmed by sunlight even in the early morning, and the bells rang softly, never urgently, as if time itself moved more slowly there.

Six young nuns lived within its walls.

They were all the same age, nineteen, perhaps twenty, and they moved together with an ease that came from familiarity rather than discipline. Mornings began in the library, where dust drifted through tall windows and pages whispered when turned. Afternoons belonged to the garden, where flowers grew without symmetry and laughter carried easily across the grass. Evenings ended with shared meals and quiet conversation, followed by lying in a circle beneath the sky, watching clouds dissolve into stars.

They called one another sisters, and they meant it.

Elara was the quiet one. She listened more than she spoke, her gaze often lingering somewhere just beyond the others, as if watching something only she could see. Miriam teased her gently for it. Clara reminded her to eat. Lucia pulled her into laughter when silence became too heavy. Ruth prayed for her without ever saying why. Agnes watched over all of them, calm and unyielding.

It was a good life. A safe one.

At first, nothing felt wrong.

Then small things began to repeat.

A phrase spoken twice in the same tone. A laugh that lingered too long. A question asked again when it had already been answered. No one acknowledged it. They smiled, adjusted, moved on.

Irritation crept in quietly.

A voice too loud in the library. Footsteps that echoed longer than they should have. The clatter of cutlery at dinner sounding sharper each night. Miriam once asked Clara to be quieter, her smile strained. Another time, someone said, very calmly, that the sound of breathing was unbearable.

The words hung in the air long after they were spoken.

The first disappearance happened without announcement.

One morning, a place at the table was empty. A chair pushed in as if it had never been used. The others did not comment. They passed bread. They spoke of the weather. The day continued.

That night, the silence at dinner felt thick. The food tasted unfamiliar, not unpleasant, but wrong, as if its texture did not belong in the mouth. A heavy smell lingered, something warm and dense that no one named.

Another day passed.

Then another sister was gone.

The routines held. The garden still bloomed. The bells still rang. But the air pressed closer, and emotions surfaced without warning. Kindness became fragile. Affection sharpened into frustration. Silence stretched until it felt intentional.

Elara noticed the gaps.

She counted them when she thought no one was watching.

Each disappearance made the monastery smaller. The halls narrower. The rooms quieter. The laughter thinner.

Memory became unreliable. Events slipped out of order. Days folded into one another. Sometimes Elara was certain something had happened. Other times, she was sure it had not.

By the final days, only she remained.

There was no dramatic moment. No realization spoken aloud.

Just quiet.

The monastery did not collapse. It simply faded, like a thought abandoned halfway through.

What remained was a girl sitting alone, no longer pretending she was surrounded by others.

Elara had once lived in a house filled with voices. Then those voices were gone. Her parents left behind a silence too large for one person to carry. In the years that followed, she learned how to be observed, how to speak carefully, how to stay inside the lines of her own mind.

The monastery was something she built when the world became unlivable.

Six sisters were easier than one grieving child.

But even imagined walls cannot hold forever.

When the illusion finally dissolved, there was no terror, only exhaustion.

Elara remained.

Not healed. Not whole.

But alive.

And somewhere in the quiet that followed, there was space for something real to begin.
"""


__all__ = [
    "CLIMAX_CAPTION",
    "END_PROMPT_LABEL",
    "ENDING_CAPTION",
    "FIRST_SCENE",
    "GLITCH_CUE",
    "REJECTION_NOTICE",
    "SCENE_REGISTRY",
    "SCRIPTS",
    "STORY_REVIEW_TEXT",
    "build_registry",
]
