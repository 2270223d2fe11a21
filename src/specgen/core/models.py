"""Domain records for generated content and paginated listings."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class ContentType(str, Enum):
    """Kind of generated content; fixed when a record is created."""

    FICTION = "fiction"
    IMAGE = "image"
    COMBINED = "combined"

    @property
    def has_text(self) -> bool:
        return self in (ContentType.FICTION, ContentType.COMBINED)

    @property
    def has_image(self) -> bool:
        return self in (ContentType.IMAGE, ContentType.COMBINED)

    @property
    def label(self) -> str:
        """Capitalised name used for placeholder titles."""
        return self.value.capitalize()


@dataclass
class ImageBlob:
    """Raw image bytes plus their format (``png``, ``jpeg``, ``webp``, ``gif``)."""

    data: bytes
    format: str = "png"

    @property
    def media_type(self) -> str:
        return f"image/{self.format}"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ContentRecord:
    """The unit of persistence.

    ``id``, ``title``, ``created_at`` and ``updated_at`` may be left as
    ``None``; :meth:`ContentStore.save` assigns them.

    Attributes:
        content_type: fiction, image or combined.
        title: Human-readable title.
        text_body: Generated story text (fiction and combined only).
        image: Generated image (image and combined only).
        parameter_selections: category-id -> parameter-id -> value.
        metadata: Provider models, usage counters and prompt excerpts.
        setting_year: Year the story is set in, when known.
    """

    content_type: ContentType
    title: str | None = None
    text_body: str | None = None
    image: ImageBlob | None = None
    parameter_selections: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    setting_year: int | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_image(self) -> bool:
        return self.image is not None

    def validate(self) -> None:
        """Check the content-type invariants.

        Raises:
            ValueError: If the record carries a body its type forbids, or
                lacks the one it requires.
        """
        content_type = ContentType(self.content_type)

        if content_type is ContentType.FICTION and self.image is not None:
            raise ValueError("A fiction record cannot carry an image")
        if content_type is ContentType.IMAGE and self.text_body is not None:
            raise ValueError("An image record cannot carry a text body")
        if content_type.has_text and self.text_body is None:
            raise ValueError(f"A {content_type.value} record requires a text body")
        if content_type.has_image and self.image is None:
            raise ValueError(f"A {content_type.value} record requires an image")

        if (
            self.created_at is not None
            and self.updated_at is not None
            and self.updated_at < self.created_at
        ):
            raise ValueError("updated_at cannot precede created_at")


@dataclass
class ContentSummary:
    """A ContentRecord without its text body and image payload."""

    id: str
    title: str
    content_type: ContentType
    parameter_selections: dict[str, Any]
    metadata: dict[str, Any]
    setting_year: int | None
    created_at: datetime
    updated_at: datetime
    has_image: bool


@dataclass
class ContentFilter:
    """Optional listing filters; ``None`` means "any"."""

    content_type: ContentType | None = None
    year: int | None = None


@dataclass
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "Pagination":
        """Compute page counts for ``total`` items at ``limit`` per page."""
        total_pages = (total + limit - 1) // limit
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


@dataclass
class ContentPage:
    """One page of a listing; items are records or summaries."""

    items: list
    pagination: Pagination
