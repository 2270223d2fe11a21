"""Tests for specgen.core.prompt_builder - text and image prompt assembly.

Tests cover:
- Parameter value formatting (bools, lists, numbers).
- Story length resolution from a ``length`` parameter.
- Text prompt contents: year, parameters, word count, title instruction.
- Image prompt with visual cues and story excerpt.
- Image prompt fallback to parameters when no cues are found.
- Suffix handling and the maximum prompt length.
"""

from __future__ import annotations

import pytest

from specgen.core.config import DEFAULT_IMAGE_PROMPT_SUFFIX
from specgen.core.prompt_builder import (
    IMAGE_PROMPT_PREAMBLE,
    TEXT_PROMPT_PREAMBLE,
    build_image_prompt,
    build_text_prompt,
    format_parameter_lines,
    format_parameter_value,
    humanize_identifier,
    resolve_story_length,
    story_excerpt,
)

PARAMETERS = {
    "science-fiction": {
        "tech-level": "Advanced",
        "alien-contact": True,
        "themes": ["Terraforming", "Time Travel"],
        "story-length": 800,
    }
}


class TestFormatting:
    """Test value and identifier formatting."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (True, "Yes"),
            (False, "No"),
            (["a", "b"], "a, b"),
            (5.0, "5"),
            (2.5, "2.5"),
            ("Advanced", "Advanced"),
        ],
    )
    def test_format_parameter_value(self, value, expected):
        assert format_parameter_value(value) == expected

    def test_humanize_identifier(self):
        assert humanize_identifier("tech-level") == "tech level"
        assert humanize_identifier("alien_contact") == "alien contact"

    def test_parameter_lines_grouped_by_category(self):
        lines = format_parameter_lines(PARAMETERS)
        assert lines[0] == "Science Fiction:"
        assert "- tech level: Advanced" in lines
        assert "- alien contact: Yes" in lines
        assert "- themes: Terraforming, Time Travel" in lines

    def test_length_parameter_not_listed(self):
        lines = format_parameter_lines(PARAMETERS)
        assert not any("story length" in line for line in lines)

    def test_none_values_skipped(self):
        lines = format_parameter_lines({"fantasy": {"magic-system": None}})
        assert lines == []


class TestResolveStoryLength:
    def test_length_parameter(self):
        assert resolve_story_length(PARAMETERS) == 800

    def test_default(self):
        assert resolve_story_length({"fantasy": {"magic-system": "Runic"}}, default=450) == 450

    def test_boolean_is_not_a_length(self):
        assert resolve_story_length({"x": {"length": True}}, default=300) == 300


class TestBuildTextPrompt:
    """Test build_text_prompt()."""

    def test_contains_all_sections(self):
        prompt = build_text_prompt(PARAMETERS, 2150)
        assert prompt.startswith(TEXT_PROMPT_PREAMBLE)
        assert "Setting: Year 2150" in prompt
        assert "- tech level: Advanced" in prompt
        assert "approximately 800 words long" in prompt
        assert "**Title: Your Title Here**" in prompt

    def test_default_length_and_no_year(self):
        prompt = build_text_prompt({}, default_story_length=600)
        assert "Setting: Year" not in prompt
        assert "approximately 600 words long" in prompt

    def test_deterministic(self):
        assert build_text_prompt(PARAMETERS, 2150) == build_text_prompt(PARAMETERS, 2150)


class TestStoryExcerpt:
    def test_marker_stripped_and_whitespace_collapsed(self):
        assert story_excerpt("**Title: X**\n\nOne   two\nthree.") == "One two three."

    def test_truncated_with_ellipsis(self):
        excerpt = story_excerpt("a" * 50, limit=10)
        assert excerpt == "a" * 10 + "..."


class TestBuildImagePrompt:
    """Test build_image_prompt() with and without cues."""

    def test_cues_from_story(self, mars_dawn_story):
        prompt = build_image_prompt(PARAMETERS, 2150, story_text=mars_dawn_story)
        assert prompt.startswith(
            f"{IMAGE_PROMPT_PREAMBLE} depicting the following scene: "
            "Dr. Vasquez, advanced scanner, red dust."
        )
        assert "Set in the year 2150." in prompt
        assert 'This image should complement the following story:\n"Dr. Vasquez stood' in prompt
        assert prompt.endswith(DEFAULT_IMAGE_PROMPT_SUFFIX)

    def test_explicit_cues(self):
        prompt = build_image_prompt({}, visual_cues=["crimson aurora", "lunar station"], suffix="")
        assert prompt == f"{IMAGE_PROMPT_PREAMBLE} depicting the following scene: crimson aurora, lunar station."

    def test_fallback_to_parameters(self):
        prompt = build_image_prompt(PARAMETERS, 2150, story_text="Nothing visual here at all.")
        assert prompt.startswith(f"{IMAGE_PROMPT_PREAMBLE} with the following elements:")
        assert "Set in the year 2150." in prompt
        assert "- tech level: Advanced" in prompt
        assert "complement the following story" not in prompt

    def test_no_story(self):
        prompt = build_image_prompt(PARAMETERS, suffix="")
        assert "with the following elements:" in prompt
        assert "Set in the year" not in prompt

    def test_truncated_to_max_length(self, mars_dawn_story):
        prompt = build_image_prompt(PARAMETERS, 2150, story_text=mars_dawn_story * 20, max_length=300)
        assert len(prompt) == 300

    def test_excerpt_length(self, mars_dawn_story):
        prompt = build_image_prompt({}, story_text=mars_dawn_story, excerpt_length=20, suffix="")
        assert '"Dr. Vasquez stood at..."' in prompt
