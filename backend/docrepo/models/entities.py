"""Internal dataclasses representing persisted entities."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from docrepo.utils.time import from_iso


class OcrStatus(str, Enum):
    """OCR lifecycle of a document.

    ``PENDING`` is the initial state and the state re-entered on retry;
    ``SUCCEEDED`` and ``FAILED`` are terminal until a retry resets them.
    """

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class Document:
    id: str
    content_hash: str
    storage_path: str
    subject: str
    tags: str
    office_category_id: int | None
    document_category_id: int | None
    document_date: date | None
    original_file_name: str
    mime_type: str
    file_size_bytes: int
    is_active: bool
    is_deleted: bool
    created_by: str
    created_at: datetime
    updated_by: str
    updated_at: datetime
    ocr_status: OcrStatus
    ocr_failure_reason: str | None
    ocr_last_tried_at: datetime | None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "Document":
        return cls(
            id=row["id"],
            content_hash=row["content_hash"],
            storage_path=row["storage_path"],
            subject=row["subject"],
            tags=row["tags"],
            office_category_id=row["office_category_id"],
            document_category_id=row["document_category_id"],
            document_date=date.fromisoformat(row["document_date"]) if row["document_date"] else None,
            original_file_name=row["original_file_name"],
            mime_type=row["mime_type"],
            file_size_bytes=row["file_size_bytes"],
            is_active=bool(row["is_active"]),
            is_deleted=bool(row["is_deleted"]),
            created_by=row["created_by"],
            created_at=from_iso(row["created_at"]),
            updated_by=row["updated_by"],
            updated_at=from_iso(row["updated_at"]),
            ocr_status=OcrStatus(row["ocr_status"]),
            ocr_failure_reason=row["ocr_failure_reason"],
            ocr_last_tried_at=from_iso(row["ocr_last_tried_at"]),
        )


@dataclass(slots=True, frozen=True)
class DocumentText:
    document_id: str
    ocr_text: str | None
    updated_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "DocumentText":
        return cls(
            document_id=row["document_id"],
            ocr_text=row["ocr_text"],
            updated_at=from_iso(row["updated_at"]),
        )


@dataclass(slots=True, frozen=True)
class ExternalLink:
    id: str
    document_id: str
    source_module: str
    source_item_id: str
    created_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "ExternalLink":
        return cls(
            id=row["id"],
            document_id=row["document_id"],
            source_module=row["source_module"],
            source_item_id=row["source_item_id"],
            created_at=from_iso(row["created_at"]),
        )


__all__ = ["OcrStatus", "Document", "DocumentText", "ExternalLink"]
