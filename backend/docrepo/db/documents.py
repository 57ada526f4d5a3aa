"""Document persistence split by writer role.

``DocumentRepository`` owns reads plus the ingestion-side writes (document and
link creation, soft delete). ``OcrStateStore`` owns the OCR columns and the
``document_texts`` table. The two never write the same columns, so an ingestion
request and an OCR run touching the same row cannot lose each other's updates.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from docrepo.db.sqlite import SQLiteDatabase
from docrepo.models.entities import Document, DocumentText, ExternalLink, OcrStatus
from docrepo.utils.ids import new_id
from docrepo.utils.time import to_iso


@dataclass(slots=True)
class NewDocument:
    """Column values for a document row created by ingestion."""

    id: str
    content_hash: str
    storage_path: str
    subject: str
    original_file_name: str
    file_size_bytes: int
    office_category_id: int
    document_category_id: int
    created_by: str
    created_at: datetime
    mime_type: str = "application/pdf"
    tags: str = ""


class DocumentRepository:
    """Reads and ingestion-owned writes against the documents tables."""

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    # Reads ------------------------------------------------------------

    def get(self, document_id: str) -> Document | None:
        row = self.db.query_one("SELECT * FROM documents WHERE id = ?", [document_id])
        return Document.from_row(row) if row else None

    def find_active_by_hash(self, content_hash: str) -> Document | None:
        row = self.db.query_one(
            "SELECT * FROM documents WHERE content_hash = ? AND is_deleted = 0",
            [content_hash],
        )
        return Document.from_row(row) if row else None

    def links_for(self, document_id: str) -> list[ExternalLink]:
        rows = self.db.query(
            "SELECT * FROM external_links WHERE document_id = ? ORDER BY created_at, id",
            [document_id],
        )
        return [ExternalLink.from_row(row) for row in rows]

    def get_text(self, document_id: str) -> DocumentText | None:
        row = self.db.query_one("SELECT * FROM document_texts WHERE document_id = ?", [document_id])
        return DocumentText.from_row(row) if row else None

    def ids_by_status(self, status: OcrStatus, limit: int | None = None) -> list[str]:
        """Ids of live documents in ``status``, oldest first."""
        sql = "SELECT id FROM documents WHERE is_deleted = 0 AND ocr_status = ? ORDER BY created_at, seq"
        params: list[object] = [status.value]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [row["id"] for row in self.db.query(sql, params)]

    # Ingestion writes -------------------------------------------------

    def create_with_link(self, document: NewDocument, source_module: str, source_item_id: str) -> None:
        """Insert a Pending document and its first external link as one unit.

        Raises ``sqlite3.IntegrityError`` when a live document with the same
        content hash already exists.
        """
        created = to_iso(document.created_at)
        with self.db.transaction() as cur:
            cur.execute(
                """
                INSERT INTO documents (
                  id, content_hash, storage_path, subject, tags,
                  office_category_id, document_category_id, original_file_name,
                  mime_type, file_size_bytes, is_active, is_deleted,
                  created_by, created_at, updated_by, updated_at, ocr_status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, 0, ?, ?, ?, ?, ?)
                """,
                [
                    document.id,
                    document.content_hash,
                    document.storage_path,
                    document.subject,
                    document.tags,
                    document.office_category_id,
                    document.document_category_id,
                    document.original_file_name,
                    document.mime_type,
                    document.file_size_bytes,
                    document.created_by,
                    created,
                    document.created_by,
                    created,
                    OcrStatus.PENDING.value,
                ],
            )
            cur.execute(
                """
                INSERT INTO external_links (id, document_id, source_module, source_item_id, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [new_id(), document.id, source_module, source_item_id, created],
            )

    def ensure_link(self, document_id: str, source_module: str, source_item_id: str, now: datetime) -> bool:
        """Link a source item to a document once; returns True when a link was added."""
        with self.db.transaction() as cur:
            cur.execute(
                """
                INSERT OR IGNORE INTO external_links (id, document_id, source_module, source_item_id, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                [new_id(), document_id, source_module, source_item_id, to_iso(now)],
            )
            return cur.rowcount > 0

    def soft_delete(self, document_id: str, actor: str, now: datetime) -> bool:
        with self.db.transaction() as cur:
            cur.execute(
                """
                UPDATE documents
                SET is_deleted = 1, is_active = 0, updated_by = ?, updated_at = ?
                WHERE id = ? AND is_deleted = 0
                """,
                [actor, to_iso(now), document_id],
            )
            return cur.rowcount > 0


class OcrStateStore:
    """The only writer of OCR state: status, failure reason, last attempt and text.

    Outcomes are recorded only against a Pending row, so a document moves
    Pending -> Succeeded/Failed once per reset.
    """

    def __init__(self, db: SQLiteDatabase) -> None:
        self.db = db

    def mark_pending(self, document_id: str, now: datetime) -> bool:
        """Reset a live document to Pending and blank any previously extracted text."""
        with self.db.transaction() as cur:
            cur.execute(
                """
                UPDATE documents
                SET ocr_status = ?, ocr_failure_reason = NULL, ocr_last_tried_at = NULL
                WHERE id = ? AND is_deleted = 0
                """,
                [OcrStatus.PENDING.value, document_id],
            )
            if cur.rowcount == 0:
                return False
            cur.execute(
                "UPDATE document_texts SET ocr_text = NULL, updated_at = ? WHERE document_id = ?",
                [to_iso(now), document_id],
            )
        return True

    def record_success(self, document_id: str, text: str, now: datetime) -> bool:
        stamp = to_iso(now)
        with self.db.transaction() as cur:
            cur.execute(
                """
                UPDATE documents
                SET ocr_status = ?, ocr_failure_reason = NULL, ocr_last_tried_at = ?
                WHERE id = ? AND ocr_status = ?
                """,
                [OcrStatus.SUCCEEDED.value, stamp, document_id, OcrStatus.PENDING.value],
            )
            if cur.rowcount == 0:
                return False
            cur.execute(
                """
                INSERT INTO document_texts (document_id, ocr_text, updated_at) VALUES (?, ?, ?)
                ON CONFLICT (document_id) DO UPDATE SET ocr_text = excluded.ocr_text, updated_at = excluded.updated_at
                """,
                [document_id, text, stamp],
            )
        return True

    def record_failure(self, document_id: str, reason: str, now: datetime) -> bool:
        stamp = to_iso(now)
        with self.db.transaction() as cur:
            cur.execute(
                """
                UPDATE documents
                SET ocr_status = ?, ocr_failure_reason = ?, ocr_last_tried_at = ?
                WHERE id = ? AND ocr_status = ?
                """,
                [OcrStatus.FAILED.value, reason, stamp, document_id, OcrStatus.PENDING.value],
            )
            if cur.rowcount == 0:
                return False
            cur.execute(
                "UPDATE document_texts SET ocr_text = NULL, updated_at = ? WHERE document_id = ?",
                [stamp, document_id],
            )
        return True


__all__ = ["NewDocument", "DocumentRepository", "OcrStateStore"]
