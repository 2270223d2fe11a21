"""Pydantic request models and response serialisers for the SpecGen API.

Models
------
GenerateRequest
    Payload for ``POST /api/generate``.
ContentUpdateRequest
    Payload for ``PUT /api/content/{id}``; unknown fields are ignored.

Responses are plain dictionaries built by the ``*_to_dict`` helpers so that
binary images travel as base64 strings and timestamps as ISO 8601.
"""

from __future__ import annotations

import base64
from dataclasses import asdict
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from specgen.core.models import ContentPage, ContentRecord, ContentSummary, Pagination
from specgen.core.story_parser import MAX_SETTING_YEAR, MIN_SETTING_YEAR


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Attributes:
        parameter_values: Selections keyed by category id, then parameter
            id.  Invalid selections are dropped, not rejected.
        content_type: ``"fiction"``, ``"image"`` or ``"combined"``.  Other
            values are rejected with 400 before any provider call.
        year: Optional setting year (1900-3000).
        title: Optional title overriding the one taken from the story.
    """

    parameter_values: dict[str, Any] = Field(
        default_factory=dict,
        description="Selections: category id -> parameter id -> value.",
    )
    content_type: str = Field(
        default="fiction",
        description="Content type: 'fiction', 'image' or 'combined'.",
    )
    year: int | None = Field(
        default=None,
        ge=MIN_SETTING_YEAR,
        le=MAX_SETTING_YEAR,
        description="Setting year for the story.",
    )
    title: str | None = Field(
        default=None,
        max_length=200,
        description="Title override.",
    )


class ContentUpdateRequest(BaseModel):
    """Request body for ``PUT /api/content/{id}``.

    Only fields present in the payload are applied.  ``year`` is accepted as
    an alias of ``setting_year``.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    title: str | None = Field(default=None, min_length=1, max_length=200)
    text_body: str | None = Field(default=None, max_length=50000)
    setting_year: int | None = Field(
        default=None,
        alias="year",
        ge=MIN_SETTING_YEAR,
        le=MAX_SETTING_YEAR,
    )

    def to_fields(self) -> dict[str, Any]:
        """Return only the fields the client actually sent."""
        return self.model_dump(exclude_unset=True, by_alias=False)


def pagination_to_dict(pagination: Pagination) -> dict[str, Any]:
    return asdict(pagination)


def record_to_dict(record: ContentRecord) -> dict[str, Any]:
    """Serialise a full record; the image is base64 encoded."""
    return {
        "id": record.id,
        "title": record.title,
        "content_type": record.content_type.value,
        "text_body": record.text_body,
        "image_data": base64.b64encode(record.image.data).decode("ascii") if record.image else None,
        "image_format": record.image.format if record.image else None,
        "has_image": record.has_image,
        "parameter_selections": record.parameter_selections,
        "metadata": record.metadata,
        "setting_year": record.setting_year,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }


def summary_to_dict(summary: ContentSummary) -> dict[str, Any]:
    """Serialise a summary; it never carries text or image keys."""
    return {
        "id": summary.id,
        "title": summary.title,
        "content_type": summary.content_type.value,
        "has_image": summary.has_image,
        "parameter_selections": summary.parameter_selections,
        "metadata": summary.metadata,
        "setting_year": summary.setting_year,
        "created_at": summary.created_at.isoformat(),
        "updated_at": summary.updated_at.isoformat(),
    }


def page_to_dict(page: ContentPage) -> dict[str, Any]:
    serialise = summary_to_dict if page.items and isinstance(page.items[0], ContentSummary) else record_to_dict
    return {
        "items": [serialise(item) for item in page.items],
        "pagination": pagination_to_dict(page.pagination),
    }
