"""Helpers that read structure back out of generated story text."""

import re
from datetime import datetime, timezone

TITLE_MARKER_PATTERN = re.compile(r"\*\*Title:\s*([^*\n]+)\*\*", re.IGNORECASE)
YEAR_PATTERN = re.compile(r"\b(\d{4})\b")

MIN_SETTING_YEAR = 1900
MAX_SETTING_YEAR = 3000

# First lines at or above this length are prose, not a title.
MAX_FIRST_LINE_TITLE_LENGTH = 100


def placeholder_title(label: str, when: datetime | None = None) -> str:
    """Return a dated placeholder such as ``"Fiction 2026-10-18"``."""
    when = when or datetime.now(timezone.utc)
    return f"{label} {when.strftime('%Y-%m-%d')}"


def strip_title_marker(text: str) -> str:
    """Remove every ``**Title: ...**`` marker and surrounding blank space."""
    return TITLE_MARKER_PATTERN.sub("", text).strip()


def extract_title(text: str | None, fallback_label: str = "Fiction") -> str:
    """Find the story title in generated text.

    The text prompt asks the model to open with ``**Title: <title>**``.
    Models do not always comply, so a short first line is accepted as the
    title, and a dated placeholder is used when neither is present.

    Args:
        text: Generated story text.
        fallback_label: Prefix of the dated placeholder title.

    Returns:
        The extracted or placeholder title.
    """
    if not text:
        return placeholder_title(fallback_label)

    match = TITLE_MARKER_PATTERN.search(text)
    if match:
        title = match.group(1).strip()
        if title:
            return title

    first_line = next((line.strip() for line in text.splitlines() if line.strip()), "")
    first_line = first_line.lstrip("#").replace("**", "").strip()
    if first_line and len(first_line) < MAX_FIRST_LINE_TITLE_LENGTH:
        return first_line

    return placeholder_title(fallback_label)


def extract_setting_year(text: str | None) -> int | None:
    """Return the first standalone four-digit year between 1900 and 3000."""
    if not text:
        return None
    for match in YEAR_PATTERN.finditer(text):
        year = int(match.group(1))
        if MIN_SETTING_YEAR <= year <= MAX_SETTING_YEAR:
            return year
    return None


def count_words(text: str | None) -> int:
    return len(text.split()) if text else 0
