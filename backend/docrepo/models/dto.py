"""Pydantic DTOs exposed via API."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field

from docrepo.ingest.types import IngestStatus
from docrepo.models.entities import OcrStatus


class IngestResponse(BaseModel):
    status: IngestStatus
    document_id: str | None = None


class LinkResponse(BaseModel):
    source_module: str
    source_item_id: str
    created_at: dt.datetime


class DocumentResponse(BaseModel):
    id: str
    content_hash: str
    subject: str
    tags: str
    original_file_name: str
    mime_type: str
    file_size_bytes: int
    document_date: dt.date | None = None
    office_category_id: int | None = None
    document_category_id: int | None = None
    is_active: bool
    is_deleted: bool
    created_by: str
    created_at: dt.datetime
    updated_by: str
    updated_at: dt.datetime
    ocr_status: OcrStatus
    ocr_failure_reason: str | None = None
    ocr_last_tried_at: dt.datetime | None = None
    has_text: bool = False
    links: list[LinkResponse] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    status: str
    deleted: int


class OcrRetryResponse(BaseModel):
    success: bool


class BatchResponse(BaseModel):
    processed: int


class OcrHealthResponse(BaseModel):
    pending: int
    succeeded: int
    failed: int
    searchable: int
    oldest_pending_at: dt.datetime | None = None
    last_attempt_at: dt.datetime | None = None


class SearchHitResponse(BaseModel):
    id: str
    subject: str
    date: dt.date | None = None
    snippet: str
    matched_fields: list[str]
    score: float


class SearchResponse(BaseModel):
    query: str
    results: list[SearchHitResponse]
