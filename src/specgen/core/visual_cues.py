"""Visual cue extraction from generated prose.

Image prompts are grounded in the story they illustrate by pulling a handful
of short, concrete phrases out of the text: who is in the scene, where it
happens, which objects stand out, and what the air looks like.

Extraction is a fixed, ordered tuple of :class:`VisualCueRule` entries.  Each
rule owns a compiled pattern and a cleanup function that turns a match into a
phrase (or rejects it).  Rules run in category order (characters, locations,
objects, atmosphere) and every rule contributes at most ``limit`` matches.
The combined list is deduplicated and cut to :data:`MAX_VISUAL_CUES`.

The function is pure: the same text always yields the same cues.

Example
-------
    >>> extract_visual_cues("**Title: Mars Dawn**\\nDr. Vasquez stood at the airlock.")
    ['Dr. Vasquez']
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

from specgen.core.story_parser import strip_title_marker

MAX_VISUAL_CUES = 5
MAX_MATCHES_PER_RULE = 2

# Input shorter than this cannot hold a usable scene.
MIN_TEXT_LENGTH = 10

# Phrases must be strictly longer than 2 and strictly shorter than 50 characters.
MIN_PHRASE_LENGTH = 3
MAX_PHRASE_LENGTH = 49

# A phrase contained in an earlier one is a duplicate only when it is at
# least this long, so "Elena" folds into "Dr. Elena Rodriguez" but "mist"
# survives next to "swirling purple mist".
MIN_OVERLAP_LENGTH = 5

# ---------------------------------------------------------------------------
# Vocabulary.
# ---------------------------------------------------------------------------

_NAME = r"[A-Z][a-z]+"
_TITLES = (
    r"(?:Dr\.|Doctor|Professor|Captain|Commander|Admiral|Lieutenant|Agent|Detective)"
)
_ACTION_VERBS = (
    r"(?:stood|walked|ran|sat|looked|gazed|stared|stepped|turned|entered|knelt|paused)"
)
_PREPOSITIONS = r"(?:in|at|on|through|inside|near|across|within|aboard)"
_SETTING_NOUNS = (
    r"(?:city|planet|moon|station|facility|colony|dome|outpost|laboratory|base|ship"
    r"|castle|temple|palace|citadel|forest|jungle|mountains?|desert|ocean|sea|canyon"
    r"|ruins|chamber|hangar|space)"
)
_VEHICLES = (
    r"(?i:starship|spaceship|ship|vessel|shuttle|freighter|cruiser|station|colony|outpost)"
)
_OBJECT_ADJECTIVES = (
    r"(?:advanced|alien|ancient|glowing|metallic|crystalline|holographic|quantum"
    r"|rusted|shattered|mechanical|ornate)"
)
_ARTIFACTS = (
    r"(?:scanner|device|weapon|tool|helmet|suit|armor|console|terminal|reactor|portal"
    r"|gateway|chamber|throne|altar|artifact|relic|orb|crystal|blade|sword|engine"
    r"|drone|robot|machine)"
)
_STANDALONE_ARTIFACTS = (
    r"(?:scanner|console|terminal|reactor|portal|gateway|artifact|relic|device|throne"
    r"|altar|chamber|helmet|orb)"
)
_MOTION_WORDS = (
    r"(?:glittering|shimmering|glowing|pulsing|swirling|drifting|billowing|flickering)"
)
_COLORS = (
    r"(?:red|blue|green|golden|silver|purple|crimson|violet|amber|emerald|azure|orange)"
)
_ATMOSPHERIC_NOUNS = r"(?:mist|fog|clouds|dust|smoke|haze|steam|rain|snow|air|sparks)"
_LIGHT_NOUNS = (
    r"(?:light|glow|aurora|mist|dust|sky|haze|fog|flames?|fire|sunset|sunlight|moonlight)"
)
_STANDALONE_ATMOSPHERE = r"(?:storm|clouds|mist|fog|aurora|lightning|smoke|haze|twilight)"

# Capitalised words that start a sentence before an action verb but are not names.
_NON_NAMES = frozenset(
    {
        "He", "She", "They", "It", "We", "You", "The", "His", "Her", "Their", "Its",
        "Then", "There", "This", "That", "Everyone", "Someone", "Nobody", "Nothing",
    }
)


# ---------------------------------------------------------------------------
# Cleanup functions.
# ---------------------------------------------------------------------------


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _whole_match(match: re.Match) -> str | None:
    return _collapse(match.group(0))


def _acting_name(match: re.Match) -> str | None:
    name = _collapse(match.group(1))
    if name.split()[0] in _NON_NAMES:
        return None
    return name


def _place_phrase(match: re.Match) -> str | None:
    phrase = _collapse(match.group(1))
    return re.sub(r"^(?:a|an|the)\s+", "", phrase, flags=re.IGNORECASE)


@dataclass(frozen=True)
class VisualCueRule:
    """One extraction rule.

    Attributes:
        category: characters, locations, objects or atmosphere.
        pattern: Compiled pattern scanned over the whole text.
        cleanup: Turns a match into a phrase, or ``None`` to reject it.
        limit: Maximum number of matches taken from this rule.
    """

    category: str
    pattern: re.Pattern
    cleanup: Callable[[re.Match], str | None]
    limit: int = MAX_MATCHES_PER_RULE


VISUAL_CUE_RULES: tuple[VisualCueRule, ...] = (
    # Characters
    VisualCueRule(
        "characters",
        re.compile(rf"\b{_TITLES}[ \t]+{_NAME}(?:[ \t]+{_NAME})?"),
        _whole_match,
    ),
    VisualCueRule(
        "characters",
        re.compile(rf"\b({_NAME}(?:[ \t]+{_NAME})?)[ \t]+{_ACTION_VERBS}\b"),
        _acting_name,
    ),
    # Locations
    VisualCueRule(
        "locations",
        re.compile(
            rf"\b{_PREPOSITIONS}\s+(?:the\s+)?((?:[a-z]+[ \t]+){{0,3}}{_SETTING_NOUNS})\b",
            re.IGNORECASE,
        ),
        _place_phrase,
    ),
    VisualCueRule(
        "locations",
        re.compile(rf"\b{_VEHICLES}[ \t]+{_NAME}(?:[ \t]+{_NAME})?"),
        _whole_match,
    ),
    # Objects and technology
    VisualCueRule(
        "objects",
        re.compile(rf"\b{_OBJECT_ADJECTIVES}[ \t]+{_ARTIFACTS}s?\b", re.IGNORECASE),
        _whole_match,
    ),
    VisualCueRule(
        "objects",
        re.compile(rf"\b{_STANDALONE_ARTIFACTS}\b", re.IGNORECASE),
        _whole_match,
    ),
    # Atmosphere
    VisualCueRule(
        "atmosphere",
        re.compile(
            rf"\b{_MOTION_WORDS}[ \t]+(?:{_COLORS}[ \t]+)?{_ATMOSPHERIC_NOUNS}\b",
            re.IGNORECASE,
        ),
        _whole_match,
    ),
    VisualCueRule(
        "atmosphere",
        re.compile(rf"\b{_COLORS}[ \t]+{_LIGHT_NOUNS}\b", re.IGNORECASE),
        _whole_match,
    ),
    VisualCueRule(
        "atmosphere",
        re.compile(rf"\b{_STANDALONE_ATMOSPHERE}\b", re.IGNORECASE),
        _whole_match,
    ),
)


def is_duplicate_cue(candidate: str, existing: str) -> bool:
    """Return True when two phrases overlap enough to keep only the first.

    Phrases are duplicates when they are equal ignoring case, or when one
    contains the other and the shorter one has at least
    :data:`MIN_OVERLAP_LENGTH` characters.
    """
    a = candidate.lower()
    b = existing.lower()
    if a == b:
        return True
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    return len(shorter) >= MIN_OVERLAP_LENGTH and shorter in longer


def extract_visual_cues(
    text: str | None,
    rules: tuple[VisualCueRule, ...] = VISUAL_CUE_RULES,
    max_cues: int = MAX_VISUAL_CUES,
) -> list[str]:
    """Extract up to ``max_cues`` visual phrases from story text.

    Args:
        text: Generated prose, possibly opening with a ``**Title: ...**`` marker.
        rules: Ordered extraction rules.
        max_cues: Maximum number of phrases returned.

    Returns:
        Deduplicated phrases in discovery order.  Empty when the text is
        missing, too short, or matches nothing; callers fall back to a
        parameter-only image prompt in that case.
    """
    if not text or len(text.strip()) < MIN_TEXT_LENGTH:
        return []

    body = strip_title_marker(text)

    candidates: list[str] = []
    for rule in rules:
        taken = 0
        for match in rule.pattern.finditer(body):
            if taken >= rule.limit:
                break
            phrase = rule.cleanup(match)
            if not phrase or not MIN_PHRASE_LENGTH <= len(phrase) <= MAX_PHRASE_LENGTH:
                continue
            candidates.append(phrase)
            taken += 1

    cues: list[str] = []
    for phrase in candidates:
        if any(is_duplicate_cue(phrase, kept) for kept in cues):
            continue
        cues.append(phrase)
        if len(cues) >= max_cues:
            break

    return cues
