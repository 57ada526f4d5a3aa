"""Ranked full-text search over subject, tags and OCR text."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from docrepo.core.config import Settings
from docrepo.core.logging import get_logger
from docrepo.core.metrics import SEARCH_LATENCY
from docrepo.db.sqlite import SQLiteDatabase
from docrepo.retrieval.query_parser import ParsedQuery, parse_web_query
from docrepo.utils.time import from_iso

logger = get_logger(__name__)

# bm25 column weights for (subject, tags, body): title hits outrank tag hits outrank body hits.
COLUMN_WEIGHTS = (10.0, 5.0, 1.0)
SEARCH_COLUMNS = ("subject", "tags", "body")
SNIPPET_TOKENS = 16


@dataclass(slots=True)
class SearchHit:
    document_id: str
    subject: str
    document_date: date | None
    created_at: datetime | None
    snippet: str
    rank: float
    matched_in_subject: bool = False
    matched_in_tags: bool = False
    matched_in_body: bool = False

    @property
    def matched_fields(self) -> list[str]:
        fields = []
        if self.matched_in_subject:
            fields.append("subject")
        if self.matched_in_tags:
            fields.append("tags")
        if self.matched_in_body:
            fields.append("body")
        return fields

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.document_id,
            "subject": self.subject,
            "date": self.document_date,
            "snippet": self.snippet,
            "matched_fields": self.matched_fields,
            "score": self.rank,
        }


class SearchService:
    """Answers web-style queries against the store-maintained search index."""

    def __init__(self, db: SQLiteDatabase, settings: Settings) -> None:
        self.db = db
        self.settings = settings

    def search(self, raw_query: str | None, limit: int | None = None) -> list[SearchHit]:
        parsed = parse_web_query(raw_query)
        if parsed.is_empty:
            return []

        started = time.perf_counter()
        rows = self.db.query(
            f"""
            SELECT
              d.seq,
              d.id,
              d.subject,
              d.document_date,
              d.created_at,
              -bm25(documents_fts, {", ".join(str(w) for w in COLUMN_WEIGHTS)}) AS score,
              snippet(documents_fts, -1, '<mark>', '</mark>', '…', {SNIPPET_TOKENS}) AS excerpt
            FROM documents_fts
            JOIN documents d ON d.seq = documents_fts.rowid
            WHERE documents_fts MATCH ? AND d.is_deleted = 0
            ORDER BY score DESC, (d.document_date IS NULL) ASC, d.document_date DESC, d.created_at DESC
            LIMIT ?
            """,
            [parsed.match_expression(), limit or self.settings.search_limit],
        )
        hits = {
            row["seq"]: SearchHit(
                document_id=row["id"],
                subject=row["subject"],
                document_date=date.fromisoformat(row["document_date"]) if row["document_date"] else None,
                created_at=from_iso(row["created_at"]),
                snippet=row["excerpt"] or "",
                rank=float(row["score"]),
            )
            for row in rows
        }
        if hits:
            self._mark_provenance(parsed, hits)

        SEARCH_LATENCY.observe(time.perf_counter() - started)
        logger.debug("Search %r returned %s hits", raw_query, len(hits))
        return list(hits.values())

    def _mark_provenance(self, parsed: ParsedQuery, hits: dict[int, SearchHit]) -> None:
        placeholders = ",".join("?" for _ in hits)
        for column in SEARCH_COLUMNS:
            rows = self.db.query(
                f"SELECT rowid FROM documents_fts WHERE documents_fts MATCH ? AND rowid IN ({placeholders})",
                [parsed.column_expression(column), *hits.keys()],
            )
            for row in rows:
                setattr(hits[row["rowid"]], f"matched_in_{column}", True)


__all__ = ["SearchHit", "SearchService", "COLUMN_WEIGHTS"]
