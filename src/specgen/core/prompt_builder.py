"""Prompt construction for the text and image providers.

Prompts are assembled from the validated parameter map
(category-id -> parameter-id -> value), an optional setting year and, for
images, visual cues pulled out of an already generated story.  Every
function here is deterministic and side-effect free.

Sections are joined with blank lines, mirroring how the prompt reads when
it is shown back to the user in record metadata.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from specgen.core.config import DEFAULT_IMAGE_PROMPT_SUFFIX
from specgen.core.story_parser import strip_title_marker
from specgen.core.visual_cues import extract_visual_cues

TEXT_PROMPT_PREAMBLE = "Write a speculative fiction story with the following elements:"
TITLE_INSTRUCTION = (
    "Begin your response with the story title on its own line, formatted exactly "
    "as **Title: Your Title Here**, followed by a blank line and the story."
)
STORY_SHAPE_INSTRUCTION = (
    "Give the story a clear beginning, middle, and end, and use vivid, concrete imagery."
)

IMAGE_PROMPT_PREAMBLE = "Create a detailed, visually striking image"

DEFAULT_STORY_LENGTH = 500
DEFAULT_IMAGE_PROMPT_MAX_LENGTH = 4000
DEFAULT_EXCERPT_LENGTH = 500


def humanize_identifier(name: str) -> str:
    """Turn ``"tech-level"`` or ``"tech_level"`` into ``"tech level"``."""
    return re.sub(r"[-_]+", " ", str(name)).strip()


def format_parameter_value(value: Any) -> str:
    """Render a parameter value for a prompt line.

    Booleans become Yes/No, lists are joined with commas, and whole floats
    lose their trailing ``.0``.
    """
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (list, tuple)):
        return ", ".join(format_parameter_value(item) for item in value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_length_parameter(name: str, value: Any) -> bool:
    return (
        "length" in str(name).lower()
        and isinstance(value, (int, float))
        and not isinstance(value, bool)
        and value > 0
    )


def resolve_story_length(parameters: Mapping[str, Any], default: int = DEFAULT_STORY_LENGTH) -> int:
    """Return the target word count from a numeric ``length`` parameter, else ``default``."""
    for params in parameters.values():
        if not isinstance(params, Mapping):
            continue
        for name, value in params.items():
            if _is_length_parameter(name, value):
                return int(value)
    return default


def format_parameter_lines(parameters: Mapping[str, Any]) -> list[str]:
    """Render every non-null parameter, grouped under a category heading.

    The ``length`` parameter is left out; it drives the word-count
    instruction instead of describing the story.
    """
    lines: list[str] = []
    for category_id, params in parameters.items():
        if not isinstance(params, Mapping):
            continue
        category_lines = [
            f"- {humanize_identifier(name)}: {format_parameter_value(value)}"
            for name, value in params.items()
            if value is not None and not _is_length_parameter(name, value)
        ]
        if category_lines:
            lines.append(f"{humanize_identifier(category_id).title()}:")
            lines.extend(category_lines)
    return lines


def build_text_prompt(
    parameters: Mapping[str, Any],
    year: int | None = None,
    *,
    default_story_length: int = DEFAULT_STORY_LENGTH,
) -> str:
    """Build the user prompt for a story.

    Args:
        parameters: Validated category -> parameter -> value map.
        year: Optional setting year.
        default_story_length: Word count used when no ``length`` parameter is set.

    Returns:
        The prompt text.  Its closing instructions ask for a
        ``**Title: ...**`` marker so the title can be parsed back out.
    """
    sections = [TEXT_PROMPT_PREAMBLE]

    if year is not None:
        sections.append(f"Setting: Year {year}")

    lines = format_parameter_lines(parameters)
    if lines:
        sections.append("\n".join(lines))

    word_count = resolve_story_length(parameters, default_story_length)
    sections.append(
        f"The story should be approximately {word_count} words long. {STORY_SHAPE_INSTRUCTION}"
    )
    sections.append(TITLE_INSTRUCTION)

    return "\n\n".join(sections)


def story_excerpt(text: str, limit: int = DEFAULT_EXCERPT_LENGTH) -> str:
    """Return the story without its title marker, cut to ``limit`` characters."""
    body = " ".join(strip_title_marker(text).split())
    if len(body) > limit:
        return body[:limit].rstrip() + "..."
    return body


def build_image_prompt(
    parameters: Mapping[str, Any],
    year: int | None = None,
    *,
    story_text: str | None = None,
    visual_cues: Sequence[str] | None = None,
    suffix: str = DEFAULT_IMAGE_PROMPT_SUFFIX,
    max_length: int = DEFAULT_IMAGE_PROMPT_MAX_LENGTH,
    excerpt_length: int = DEFAULT_EXCERPT_LENGTH,
) -> str:
    """Build the image prompt.

    With visual cues (given, or extracted from ``story_text``) the prompt
    describes the scene from the cues and quotes an excerpt of the story.
    Without cues it falls back to listing the parameters the same way the
    text prompt does.

    Args:
        parameters: Validated category -> parameter -> value map.
        year: Optional setting year.
        story_text: Story generated earlier in the same request.
        visual_cues: Pre-extracted cues; extracted from ``story_text`` when ``None``.
        suffix: Quality/style sentence appended to every prompt.
        max_length: Provider prompt limit; the result is truncated to it.
        excerpt_length: Characters of story quoted after the cues.

    Returns:
        The prompt text, at most ``max_length`` characters long.
    """
    if visual_cues is None and story_text:
        visual_cues = extract_visual_cues(story_text)
    cues = [cue for cue in (visual_cues or []) if cue]

    sections: list[str] = []
    if cues:
        sections.append(f"{IMAGE_PROMPT_PREAMBLE} depicting the following scene: {', '.join(cues)}.")
        if year is not None:
            sections.append(f"Set in the year {year}.")
        if story_text and excerpt_length > 0:
            excerpt = story_excerpt(story_text, excerpt_length)
            if excerpt:
                sections.append(f'This image should complement the following story:\n"{excerpt}"')
    else:
        sections.append(f"{IMAGE_PROMPT_PREAMBLE} with the following elements:")
        if year is not None:
            sections.append(f"Set in the year {year}.")
        lines = format_parameter_lines(parameters)
        if lines:
            sections.append("\n".join(lines))

    if suffix:
        sections.append(suffix)

    return "\n\n".join(sections)[:max_length]
