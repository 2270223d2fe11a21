"""SQLite store for generated content records.

One table, ``generated_content``, keyed by ``id``.  Parameter selections and
metadata are kept as JSON text; story text and image payloads are the last
columns of the table so listings that skip them never read their pages.

Listing comes in two shapes:

- :meth:`ContentStore.list` returns full :class:`ContentRecord` objects.
- :meth:`ContentStore.list_summary` returns :class:`ContentSummary` objects
  with a ``has_image`` flag and never selects the body or image columns.

Both are ordered newest first and backed by indexes on ``content_type``,
``setting_year``, ``created_at`` and their common combinations, so type,
year and type+year filters resolve without a full table scan.

A single connection is opened per store and shared between threads behind a
lock; every mutation runs in its own transaction.
"""

from __future__ import annotations

import io
import json
import logging
import secrets
import sqlite3
import threading
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from PIL import Image, ImageOps, UnidentifiedImageError

from specgen.core.errors import ContentNotFoundError, ImageNotFoundError, StorageError
from specgen.core.models import (
    ContentFilter,
    ContentPage,
    ContentRecord,
    ContentSummary,
    ContentType,
    ImageBlob,
    Pagination,
)
from specgen.core.story_parser import placeholder_title

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
MAX_TITLE_LENGTH = 200
MAX_TEXT_LENGTH = 50000
THUMBNAIL_SIZE = (150, 150)

# Fields that ContentStore.update applies; anything else is ignored.
UPDATABLE_FIELDS = frozenset({"title", "text_body", "setting_year"})

# Pillow format names mapped to the short names used in media types.
_PIL_FORMATS = {"PNG": "png", "JPEG": "jpeg", "WEBP": "webp", "GIF": "gif", "BMP": "bmp"}

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS generated_content (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        content_type TEXT NOT NULL CHECK (content_type IN ('fiction', 'image', 'combined')),
        setting_year INTEGER,
        parameter_selections TEXT NOT NULL DEFAULT '{}',
        metadata TEXT NOT NULL DEFAULT '{}',
        image_format TEXT,
        image_size INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        text_body TEXT,
        image_data BLOB,
        image_thumbnail BLOB
    )
"""

# Ascending on created_at: a backward scan yields (created_at DESC, rowid DESC),
# which is exactly the listing order.
_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_content_type ON generated_content(content_type)",
    "CREATE INDEX IF NOT EXISTS idx_content_year ON generated_content(setting_year)",
    "CREATE INDEX IF NOT EXISTS idx_content_created_at ON generated_content(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_content_type_year_created "
    "ON generated_content(content_type, setting_year, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_content_type_created "
    "ON generated_content(content_type, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_content_year_created "
    "ON generated_content(setting_year, created_at)",
)

_RECORD_COLUMNS = (
    "id, title, content_type, setting_year, parameter_selections, metadata, "
    "image_format, created_at, updated_at, text_body, image_data"
)
_SUMMARY_COLUMNS = (
    "id, title, content_type, setting_year, parameter_selections, metadata, "
    "created_at, updated_at, image_size > 0 AS has_image"
)
# Values a save writes; compared against the stored row to decide whether
# the record changed.
_STORED_VALUE_FIELDS = (
    "title",
    "setting_year",
    "parameter_selections",
    "metadata",
    "image_format",
    "image_size",
    "created_at",
    "text_body",
    "image_data",
)
_STORED_VALUE_COLUMNS = ", ".join(_STORED_VALUE_FIELDS)
_ORDER_NEWEST_FIRST ="ORDER BY created_at DESC, rowid DESC"


def generate_content_id() -> str:
    """Return a new id such as ``content-1760781234567-3f9a1c2b``."""
    return f"content-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _format_timestamp(value: datetime) -> str:
    return _to_utc(value).isoformat(timespec="microseconds")


def detect_image_format(data: bytes, fallback: str = "png") -> str:
    """Return the short format name Pillow recognises in ``data``, else ``fallback``."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            return _PIL_FORMATS.get(image.format or "", fallback)
    except (UnidentifiedImageError, OSError, ValueError):
        return fallback


def render_thumbnail(data: bytes, size: tuple[int, int] = THUMBNAIL_SIZE) -> bytes | None:
    """Render a cover-fit PNG thumbnail, or ``None`` when ``data`` is not a decodable image."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            if image.mode not in ("RGB", "RGBA"):
                image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
            thumbnail = ImageOps.fit(image, size)
            buffer = io.BytesIO()
            thumbnail.save(buffer, format="PNG")
            return buffer.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.debug(f"No thumbnail rendered: {e}")
        return None


class ContentStore:
    """Durable, indexed storage for :class:`ContentRecord` objects.

    Args:
        db_path: SQLite database file, or ``":memory:"``.
        default_page_limit: Page size used when a listing gives none.
        max_page_limit: Upper bound applied to every listing page size.
        max_text_length: Story bodies longer than this are truncated on write.

    Raises:
        StorageError: From any operation whose SQL fails.
    """

    def __init__(
        self,
        db_path: Path | str,
        *,
        default_page_limit: int = DEFAULT_PAGE_LIMIT,
        max_page_limit: int = MAX_PAGE_LIMIT,
        max_text_length: int = MAX_TEXT_LENGTH,
    ):
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        self.default_page_limit = default_page_limit
        self.max_page_limit = max_page_limit
        self.max_text_length = max_text_length
        self._lock = threading.Lock()

        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._storage_errors("open the content database"):
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._initialize_db()
        logger.info(f"Initialized content store at {self.db_path}")

    def _initialize_db(self) -> None:
        """Create the schema and indexes if they don't exist."""
        if isinstance(self.db_path, Path):
            self._conn.execute("PRAGMA journal_mode=WAL")
        with self._conn:
            self._conn.execute(_SCHEMA)
            for statement in _INDEXES:
                self._conn.execute(statement)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _storage_errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as e:
            logger.error(f"Storage failure while trying to {action}: {e}")
            raise StorageError(f"Could not {action}: {e}") from e

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info(f"Closed content store at {self.db_path}")

    def __enter__(self) -> "ContentStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _normalize_page(self, page: int | None, limit: int | None) -> tuple[int, int]:
        page = max(int(page or 1), 1)
        limit = self.default_page_limit if limit is None else int(limit)
        limit = min(max(limit, 1), self.max_page_limit)
        return page, limit

    @staticmethod
    def _where(content_filter: ContentFilter | None) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        if content_filter is not None:
            if content_filter.content_type is not None:
                clauses.append("content_type = ?")
                params.append(ContentType(content_filter.content_type).value)
            if content_filter.year is not None:
                clauses.append("setting_year = ?")
                params.append(int(content_filter.year))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    @staticmethod
    def _load_json_object(raw: str | None, content_id: str, column: str) -> dict[str, Any]:
        """Parse a JSON object column; corrupt or non-object data becomes ``{}``."""
        if not raw:
            return {}
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning(f"Corrupt {column} JSON for content {content_id}; using empty object")
            return {}
        if not isinstance(value, dict):
            logger.warning(f"Non-object {column} JSON for content {content_id}; using empty object")
            return {}
        return value

    def _row_to_record(self, row: sqlite3.Row) -> ContentRecord:
        image = None
        if row["image_data"] is not None:
            image = ImageBlob(data=bytes(row["image_data"]), format=row["image_format"] or "png")
        return ContentRecord(
            id=row["id"],
            title=row["title"],
            content_type=ContentType(row["content_type"]),
            text_body=row["text_body"],
            image=image,
            parameter_selections=self._load_json_object(
                row["parameter_selections"], row["id"], "parameter_selections"
            ),
            metadata=self._load_json_object(row["metadata"], row["id"], "metadata"),
            setting_year=row["setting_year"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _row_to_summary(self, row: sqlite3.Row) -> ContentSummary:
        return ContentSummary(
            id=row["id"],
            title=row["title"],
            content_type=ContentType(row["content_type"]),
            parameter_selections=self._load_json_object(
                row["parameter_selections"], row["id"], "parameter_selections"
            ),
            metadata=self._load_json_object(row["metadata"], row["id"], "metadata"),
            setting_year=row["setting_year"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            has_image=bool(row["has_image"]),
        )

    def _fetch_record(self, content_id: str) -> ContentRecord:
        """Read one record; the caller holds the lock."""
        row = self._conn.execute(
            f"SELECT {_RECORD_COLUMNS} FROM generated_content WHERE id = ?",
            (content_id,),
        ).fetchone()
        if row is None:
            raise ContentNotFoundError(content_id)
        return self._row_to_record(row)

    def _bounded_text(self, text: str | None, content_id: str) -> str | None:
        if text is not None and len(text) > self.max_text_length:
            logger.warning(
                f"Truncating text of content {content_id} from {len(text)} "
                f"to {self.max_text_length} characters"
            )
            return text[: self.max_text_length]
        return text

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, record: ContentRecord) -> ContentRecord:
        """Insert or update a record by id.

        Missing ``id``, ``title`` and timestamps are assigned here.  Saving
        over an existing id keeps its ``created_at`` unless the record
        carries one, and its ``content_type`` may not change.  Saving a
        record read back from the store leaves the row unchanged, including
        ``updated_at``; re-saving with any stored value changed stamps
        ``updated_at`` with the current time.

        Args:
            record: Record to persist.

        Returns:
            The stored record, read back from the database.

        Raises:
            ValueError: If the record breaks a content-type invariant or its
                JSON fields cannot be serialised.
            StorageError: If the write fails.
        """
        record.validate()
        content_type = ContentType(record.content_type)
        content_id = record.id or generate_content_id()
        now = _utcnow()

        title = (record.title or "").strip() or placeholder_title(content_type.label, now)
        title = title[:MAX_TITLE_LENGTH]
        text_body = self._bounded_text(record.text_body, content_id)

        try:
            parameter_json = json.dumps(record.parameter_selections or {}, ensure_ascii=False)
            metadata_json = json.dumps(record.metadata or {}, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Content {content_id} has non-serialisable fields: {e}") from e

        image_data = image_format = thumbnail = None
        image_size = 0
        if record.image is not None:
            image_data = bytes(record.image.data)
            image_format = detect_image_format(image_data, record.image.format or "png")
            image_size = len(image_data)
            thumbnail = render_thumbnail(image_data)

        with self._lock, self._storage_errors(f"save content {content_id}"):
            existing = self._conn.execute(
                f"SELECT {_STORED_VALUE_COLUMNS}, content_type, updated_at "
                "FROM generated_content WHERE id = ?",
                (content_id,),
            ).fetchone()
            if existing is not None and existing["content_type"] != content_type.value:
                raise ValueError(
                    f"Content {content_id} is {existing['content_type']}; "
                    f"its type cannot change to {content_type.value}"
                )

            if record.created_at is not None:
                created_at = _to_utc(record.created_at)
            elif existing is not None:
                created_at = datetime.fromisoformat(existing["created_at"])
            else:
                created_at = now

            incoming = (
                title,
                record.setting_year,
                parameter_json,
                metadata_json,
                image_format,
                image_size,
                _format_timestamp(created_at),
                text_body,
                image_data,
            )
            if existing is None:
                updated_at = _to_utc(record.updated_at) if record.updated_at is not None else now
            elif incoming == tuple(existing[column] for column in _STORED_VALUE_FIELDS):
                updated_at = datetime.fromisoformat(existing["updated_at"])
            else:
                updated_at = now
            updated_at = max(updated_at, created_at)

            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO generated_content (
                        id, title, content_type, setting_year, parameter_selections,
                        metadata, image_format, image_size, created_at, updated_at,
                        text_body, image_data, image_thumbnail
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        title = excluded.title,
                        setting_year = excluded.setting_year,
                        parameter_selections = excluded.parameter_selections,
                        metadata = excluded.metadata,
                        image_format = excluded.image_format,
                        image_size = excluded.image_size,
                        created_at = excluded.created_at,
                        updated_at = excluded.updated_at,
                        text_body = excluded.text_body,
                        image_data = excluded.image_data,
                        image_thumbnail = excluded.image_thumbnail
                    """,
                    (
                        content_id,
                        title,
                        content_type.value,
                        record.setting_year,
                        parameter_json,
                        metadata_json,
                        image_format,
                        image_size,
                        _format_timestamp(created_at),
                        _format_timestamp(updated_at),
                        text_body,
                        image_data,
                        thumbnail,
                    ),
                )
            saved = self._fetch_record(content_id)

        logger.info(f"Saved {content_type.value} content '{saved.title}' ({content_id})")
        return saved

    def update(self, content_id: str, fields: Mapping[str, Any]) -> ContentRecord:
        """Apply a partial edit of title, text body or setting year.

        Unsupported keys are ignored.  ``text_body`` is ignored for image
        records and ``setting_year`` may be cleared with ``None``.
        ``updated_at`` always advances.

        Raises:
            ContentNotFoundError: If no record has ``content_id``.
            StorageError: If the write fails.
        """
        ignored = sorted(set(fields) - UPDATABLE_FIELDS)
        if ignored:
            logger.debug(f"Ignoring unsupported update fields for {content_id}: {ignored}")

        with self._lock, self._storage_errors(f"update content {content_id}"):
            row = self._conn.execute(
                "SELECT content_type, created_at FROM generated_content WHERE id = ?",
                (content_id,),
            ).fetchone()
            if row is None:
                raise ContentNotFoundError(content_id)
            content_type = ContentType(row["content_type"])

            changes: dict[str, Any] = {}
            title = fields.get("title")
            if isinstance(title, str) and title.strip():
                changes["title"] = title.strip()[:MAX_TITLE_LENGTH]
            if "text_body" in fields:
                text_body = fields["text_body"]
                if content_type.has_text and isinstance(text_body, str):
                    changes["text_body"] = self._bounded_text(text_body, content_id)
                else:
                    logger.debug(f"Ignoring text_body update for {content_type.value} content {content_id}")
            if "setting_year" in fields:
                year = fields["setting_year"]
                if year is None or (isinstance(year, int) and not isinstance(year, bool)):
                    changes["setting_year"] = year

            created_at = datetime.fromisoformat(row["created_at"])
            changes["updated_at"] = _format_timestamp(max(_utcnow(), created_at))

            assignments = ", ".join(f"{column} = ?" for column in changes)
            with self._conn:
                self._conn.execute(
                    f"UPDATE generated_content SET {assignments} WHERE id = ?",
                    (*changes.values(), content_id),
                )
            updated = self._fetch_record(content_id)

        logger.info(f"Updated content {content_id} ({', '.join(sorted(changes))})")
        return updated

    def delete(self, content_id: str) -> ContentRecord:
        """Hard-delete a record and return it.

        Raises:
            ContentNotFoundError: If no record has ``content_id``.
            StorageError: If the delete fails.
        """
        with self._lock, self._storage_errors(f"delete content {content_id}"):
            record = self._fetch_record(content_id)
            with self._conn:
                self._conn.execute("DELETE FROM generated_content WHERE id = ?", (content_id,))

        logger.info(f"Deleted content '{record.title}' ({content_id})")
        return record

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_id(self, content_id: str) -> ContentRecord:
        """Return the full record.

        Raises:
            ContentNotFoundError: If no record has ``content_id``.
        """
        with self._lock, self._storage_errors(f"read content {content_id}"):
            return self._fetch_record(content_id)

    def get_image(self, content_id: str, *, thumbnail: bool = False) -> ImageBlob:
        """Return only the image payload of a record.

        Args:
            content_id: Record id.
            thumbnail: Return the 150x150 PNG thumbnail instead of the original.

        Raises:
            ContentNotFoundError: If no record has ``content_id``.
            ImageNotFoundError: If the record exists without the requested image.
        """
        column = "image_thumbnail" if thumbnail else "image_data"
        with self._lock, self._storage_errors(f"read image of content {content_id}"):
            row = self._conn.execute(
                f"SELECT {column} AS data, image_format FROM generated_content WHERE id = ?",
                (content_id,),
            ).fetchone()

        if row is None:
            raise ContentNotFoundError(content_id)
        if row["data"] is None:
            raise ImageNotFoundError(content_id, "thumbnail" if thumbnail else "image")

        image_format = "png" if thumbnail else (row["image_format"] or "png")
        return ImageBlob(data=bytes(row["data"]), format=image_format)

    def count(self, content_filter: ContentFilter | None = None) -> int:
        where, params = self._where(content_filter)
        with self._lock, self._storage_errors("count content"):
            return self._conn.execute(
                f"SELECT COUNT(*) FROM generated_content {where}", params
            ).fetchone()[0]

    def _page(
        self,
        columns: str,
        content_filter: ContentFilter | None,
        page: int | None,
        limit: int | None,
    ) -> tuple[list[sqlite3.Row], Pagination]:
        page, limit = self._normalize_page(page, limit)
        where, params = self._where(content_filter)
        with self._lock, self._storage_errors("list content"):
            total = self._conn.execute(
                f"SELECT COUNT(*) FROM generated_content {where}", params
            ).fetchone()[0]
            rows = self._conn.execute(
                f"SELECT {columns} FROM generated_content {where} "
                f"{_ORDER_NEWEST_FIRST} LIMIT ? OFFSET ?",
                (*params, limit, (page - 1) * limit),
            ).fetchall()
        return rows, Pagination.build(total, page, limit)

    def list(
        self,
        content_filter: ContentFilter | None = None,
        page: int | None = 1,
        limit: int | None = None,
    ) -> ContentPage:
        """Return one page of full records, newest first.

        ``page`` below 1 becomes 1 and ``limit`` is clamped to
        ``1..max_page_limit``.
        """
        rows, pagination = self._page(_RECORD_COLUMNS, content_filter, page, limit)
        return ContentPage(items=[self._row_to_record(row) for row in rows], pagination=pagination)

    def list_summary(
        self,
        content_filter: ContentFilter | None = None,
        page: int | None = 1,
        limit: int | None = None,
    ) -> ContentPage:
        """Same as :meth:`list` but returns summaries without body or image."""
        rows, pagination = self._page(_SUMMARY_COLUMNS, content_filter, page, limit)
        return ContentPage(items=[self._row_to_summary(row) for row in rows], pagination=pagination)

    def distinct_years(self) -> list[int]:
        """Return every setting year in use, ascending."""
        with self._lock, self._storage_errors("list setting years"):
            rows = self._conn.execute(
                "SELECT DISTINCT setting_year FROM generated_content "
                "WHERE setting_year IS NOT NULL ORDER BY setting_year"
            ).fetchall()
        return [row[0] for row in rows]
