"""Document API routes."""

from __future__ import annotations

import io

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from docrepo.api.dependencies import get_app_settings, get_ingestion_service, get_repository
from docrepo.core.config import Settings
from docrepo.core.errors import ConfigurationError
from docrepo.core.metrics import REQUEST_COUNT
from docrepo.db.documents import DocumentRepository
from docrepo.ingest.service import IngestionService
from docrepo.models.dto import DeleteResponse, DocumentResponse, IngestResponse, LinkResponse
from docrepo.utils.ids import parse_id
from docrepo.utils.time import utc_now

router = APIRouter()


@router.post("/ingest", response_model=IngestResponse, summary="Ingest a PDF handed over by another module")
async def ingest_document(
    file: UploadFile = File(...),
    source_module: str = Form(...),
    source_item_id: str = Form(...),
    service: IngestionService = Depends(get_ingestion_service),
) -> IngestResponse:
    content = await file.read()
    try:
        outcome = service.ingest_external_pdf(io.BytesIO(content), file.filename, source_module, source_item_id)
    except ConfigurationError as exc:
        REQUEST_COUNT.labels(endpoint="ingest", method="POST", status="503").inc()
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ValueError as exc:
        REQUEST_COUNT.labels(endpoint="ingest", method="POST", status="400").inc()
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    REQUEST_COUNT.labels(endpoint="ingest", method="POST", status="200").inc()
    return IngestResponse(status=outcome.status, document_id=outcome.document_id)


@router.get("/{document_id}", response_model=DocumentResponse, summary="Document metadata, links and OCR state")
async def get_document(
    document_id: str,
    repository: DocumentRepository = Depends(get_repository),
) -> DocumentResponse:
    canonical = parse_id(document_id)
    document = repository.get(canonical) if canonical else None
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    text = repository.get_text(document.id)
    return DocumentResponse(
        id=document.id,
        content_hash=document.content_hash,
        subject=document.subject,
        tags=document.tags,
        original_file_name=document.original_file_name,
        mime_type=document.mime_type,
        file_size_bytes=document.file_size_bytes,
        document_date=document.document_date,
        office_category_id=document.office_category_id,
        document_category_id=document.document_category_id,
        is_active=document.is_active,
        is_deleted=document.is_deleted,
        created_by=document.created_by,
        created_at=document.created_at,
        updated_by=document.updated_by,
        updated_at=document.updated_at,
        ocr_status=document.ocr_status,
        ocr_failure_reason=document.ocr_failure_reason,
        ocr_last_tried_at=document.ocr_last_tried_at,
        has_text=bool(text and text.ocr_text),
        links=[
            LinkResponse(
                source_module=link.source_module,
                source_item_id=link.source_item_id,
                created_at=link.created_at,
            )
            for link in repository.links_for(document.id)
        ],
    )


@router.post("/{document_id}/delete", response_model=DeleteResponse, summary="Soft-delete a document")
async def delete_document(
    document_id: str,
    repository: DocumentRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
) -> DeleteResponse:
    canonical = parse_id(document_id)
    if canonical is None or repository.get(canonical) is None:
        raise HTTPException(status_code=404, detail="Document not found")
    deleted = repository.soft_delete(canonical, settings.ingestion_user_id, utc_now())
    return DeleteResponse(status="ok" if deleted else "noop", deleted=int(deleted))


__all__ = ["router"]
