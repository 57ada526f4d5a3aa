"""Point-in-time view of the OCR queue."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from docrepo.core.metrics import PENDING_DOCUMENTS
from docrepo.db.sqlite import SQLiteDatabase
from docrepo.models.entities import OcrStatus
from docrepo.utils.time import from_iso


@dataclass(slots=True, frozen=True)
class OcrHealth:
    pending: int
    succeeded: int
    failed: int
    searchable: int
    oldest_pending_at: datetime | None
    last_attempt_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "pending": self.pending,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "searchable": self.searchable,
            "oldest_pending_at": self.oldest_pending_at,
            "last_attempt_at": self.last_attempt_at,
        }


def ocr_health(db: SQLiteDatabase) -> OcrHealth:
    """Counts per OCR status over live documents, plus queue age and last activity."""
    counts = {status: 0 for status in OcrStatus}
    for row in db.query(
        "SELECT ocr_status, COUNT(*) AS n FROM documents WHERE is_deleted = 0 GROUP BY ocr_status",
    ):
        counts[OcrStatus(row["ocr_status"])] = int(row["n"])

    searchable = db.query_one(
        """
        SELECT COUNT(*) AS n
        FROM documents d
        JOIN document_texts t ON t.document_id = d.id
        WHERE d.is_deleted = 0 AND t.ocr_text IS NOT NULL AND trim(t.ocr_text) <> ''
        """,
    )
    ages = db.query_one(
        """
        SELECT
          MIN(CASE WHEN ocr_status = ? THEN created_at END) AS oldest_pending,
          MAX(ocr_last_tried_at) AS last_attempt
        FROM documents
        WHERE is_deleted = 0
        """,
        [OcrStatus.PENDING.value],
    )

    PENDING_DOCUMENTS.set(counts[OcrStatus.PENDING])
    return OcrHealth(
        pending=counts[OcrStatus.PENDING],
        succeeded=counts[OcrStatus.SUCCEEDED],
        failed=counts[OcrStatus.FAILED],
        searchable=int(searchable["n"]) if searchable else 0,
        oldest_pending_at=from_iso(ages["oldest_pending"]) if ages else None,
        last_attempt_at=from_iso(ages["last_attempt"]) if ages else None,
    )


__all__ = ["OcrHealth", "ocr_health"]
