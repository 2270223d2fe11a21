"""Tests for specgen.core.story_parser - title, year and word count helpers.

Tests cover:
- Title marker extraction and the first-line fallback.
- Dated placeholder titles.
- Setting year extraction within 1900-3000.
- Word counting.
"""

from __future__ import annotations

from datetime import datetime, timezone

from specgen.core.story_parser import (
    count_words,
    extract_setting_year,
    extract_title,
    placeholder_title,
    strip_title_marker,
)


class TestExtractTitle:
    """Test extract_title() fallbacks."""

    def test_title_marker(self, mars_dawn_story):
        assert extract_title(mars_dawn_story) == "Mars Dawn"

    def test_marker_case_insensitive(self):
        assert extract_title("**title: Quiet Orbit**\n\nText.") == "Quiet Orbit"

    def test_marker_later_in_text(self):
        """The marker wins even when it is not on the first line."""
        text = "Here is your story.\n\n**Title: The Long Night**\n\nIt was dark."
        assert extract_title(text) == "The Long Night"

    def test_short_first_line_used(self):
        text = "# The Salt Engine\n\nThe engine turned over twice before it caught."
        assert extract_title(text) == "The Salt Engine"

    def test_bold_first_line_unwrapped(self):
        assert extract_title("**Echoes**\n\nThe ship was silent.") == "Echoes"

    def test_long_first_line_falls_back_to_placeholder(self):
        text = "word " * 40
        title = extract_title(text, fallback_label="Combined")
        assert title.startswith("Combined ")
        assert title == placeholder_title("Combined")

    def test_empty_text(self):
        assert extract_title("") == placeholder_title("Fiction")
        assert extract_title(None) == placeholder_title("Fiction")


class TestPlaceholderTitle:
    def test_format(self):
        when = datetime(2150, 3, 7, 12, 0, tzinfo=timezone.utc)
        assert placeholder_title("Image", when) == "Image 2150-03-07"


class TestStripTitleMarker:
    def test_marker_removed(self, mars_dawn_story):
        body = strip_title_marker(mars_dawn_story)
        assert "Title" not in body
        assert body.startswith("Dr. Vasquez")

    def test_text_without_marker_unchanged(self):
        assert strip_title_marker("  Plain text.  ") == "Plain text."


class TestExtractSettingYear:
    """Test extract_setting_year() bounds."""

    def test_first_year_found(self, mars_dawn_story):
        assert extract_setting_year(mars_dawn_story) == 2150

    def test_out_of_range_years_skipped(self):
        assert extract_setting_year("In 1850 and again in 3500, then 2077.") == 2077

    def test_bounds_inclusive(self):
        assert extract_setting_year("Year 1900.") == 1900
        assert extract_setting_year("Year 3000.") == 3000

    def test_embedded_digits_ignored(self):
        assert extract_setting_year("Serial 120501 and code X2150Y") is None

    def test_no_year(self):
        assert extract_setting_year("No dates here.") is None
        assert extract_setting_year(None) is None


class TestCountWords:
    def test_count(self):
        assert count_words("one two  three\nfour") == 4

    def test_empty(self):
        assert count_words("") == 0
        assert count_words(None) == 0
