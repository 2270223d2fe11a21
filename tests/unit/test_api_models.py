"""Tests for specgen.api.models - request models and response serialisers.

Tests cover:
- GenerateRequest defaults and year bounds.
- ContentUpdateRequest partial payloads and the ``year`` alias.
- Record, summary and page serialisation.
"""

from __future__ import annotations

import base64
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from specgen.api.models import (
    ContentUpdateRequest,
    GenerateRequest,
    page_to_dict,
    record_to_dict,
    summary_to_dict,
)
from specgen.core.models import (
    ContentPage,
    ContentRecord,
    ContentSummary,
    ContentType,
    ImageBlob,
    Pagination,
)

CREATED = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


class TestGenerateRequest:
    """Test GenerateRequest Pydantic model."""

    def test_defaults(self):
        req = GenerateRequest()
        assert req.parameter_values == {}
        assert req.content_type == "fiction"
        assert req.year is None
        assert req.title is None

    def test_unknown_content_type_passes_through(self):
        """Content type is checked by the orchestrator, not the model."""
        assert GenerateRequest(content_type="poem").content_type == "poem"

    @pytest.mark.parametrize("year", [1899, 3001])
    def test_year_out_of_range(self, year):
        with pytest.raises(ValidationError):
            GenerateRequest(year=year)

    def test_title_too_long(self):
        with pytest.raises(ValidationError):
            GenerateRequest(title="x" * 201)


class TestContentUpdateRequest:
    """Test ContentUpdateRequest Pydantic model."""

    def test_only_sent_fields(self):
        assert ContentUpdateRequest(title="New").to_fields() == {"title": "New"}

    def test_year_alias(self):
        assert ContentUpdateRequest.model_validate({"year": 2100}).to_fields() == {"setting_year": 2100}

    def test_explicit_null_year(self):
        assert ContentUpdateRequest.model_validate({"year": None}).to_fields() == {"setting_year": None}

    def test_unknown_fields_ignored(self):
        req = ContentUpdateRequest.model_validate({"title": "T", "content_type": "image"})
        assert req.to_fields() == {"title": "T"}

    def test_empty_title_rejected(self):
        with pytest.raises(ValidationError):
            ContentUpdateRequest(title="")


class TestSerialisers:
    def test_record_with_image(self, png_bytes):
        record = ContentRecord(
            content_type=ContentType.COMBINED,
            title="Mars Dawn",
            text_body="Story.",
            image=ImageBlob(data=png_bytes),
            setting_year=2150,
            id="content-1",
            created_at=CREATED,
            updated_at=CREATED,
        )
        data = record_to_dict(record)
        assert data["content_type"] == "combined"
        assert base64.b64decode(data["image_data"]) == png_bytes
        assert data["image_format"] == "png"
        assert data["has_image"] is True
        assert data["created_at"] == "2026-10-01T12:00:00+00:00"

    def test_record_without_image(self):
        record = ContentRecord(content_type=ContentType.FICTION, text_body="Story.", id="content-2")
        data = record_to_dict(record)
        assert data["image_data"] is None
        assert data["has_image"] is False
        assert data["created_at"] is None

    def test_summary_has_no_payload_keys(self):
        summary = ContentSummary(
            id="content-3",
            title="T",
            content_type=ContentType.IMAGE,
            parameter_selections={},
            metadata={},
            setting_year=None,
            created_at=CREATED,
            updated_at=CREATED,
            has_image=True,
        )
        data = summary_to_dict(summary)
        assert "text_body" not in data
        assert "image_data" not in data
        assert data["has_image"] is True

    def test_page(self):
        page = ContentPage(items=[], pagination=Pagination.build(total=0, page=1, limit=20))
        assert page_to_dict(page) == {
            "items": [],
            "pagination": {
                "page": 1,
                "limit": 20,
                "total": 0,
                "total_pages": 0,
                "has_next": False,
                "has_prev": False,
            },
        }
