"""OCR API routes.

OCR runs block for as long as ocrmypdf takes, so these handlers are plain
functions and FastAPI runs them in its worker threadpool.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query

from docrepo.api.dependencies import get_database, get_orchestrator
from docrepo.core.errors import ConfigurationError
from docrepo.core.metrics import REQUEST_COUNT
from docrepo.db.sqlite import SQLiteDatabase
from docrepo.models.dto import BatchResponse, OcrHealthResponse, OcrRetryResponse
from docrepo.ocr.health import ocr_health
from docrepo.ocr.orchestrator import OcrOrchestrator
from docrepo.utils.ids import parse_id

router = APIRouter()


def require_orchestrator() -> OcrOrchestrator:
    try:
        return get_orchestrator()
    except ConfigurationError as exc:
        REQUEST_COUNT.labels(endpoint="ocr", method="POST", status="503").inc()
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@router.get("/health", response_model=OcrHealthResponse, summary="OCR queue snapshot")
def get_ocr_health(db: SQLiteDatabase = Depends(get_database)) -> OcrHealthResponse:
    return OcrHealthResponse(**ocr_health(db).to_dict())


@router.post("/retry-failed", response_model=BatchResponse, summary="Retry OCR for every failed document")
def retry_failed(orchestrator: OcrOrchestrator = Depends(require_orchestrator)) -> BatchResponse:
    processed = orchestrator.retry_failed()
    REQUEST_COUNT.labels(endpoint="ocr_retry_failed", method="POST", status="200").inc()
    return BatchResponse(processed=processed)


@router.post("/process-pending", response_model=BatchResponse, summary="Run OCR for the oldest pending documents")
def process_pending(
    limit: int | None = Query(default=None, ge=1),
    orchestrator: OcrOrchestrator = Depends(require_orchestrator),
) -> BatchResponse:
    processed = orchestrator.process_pending(limit)
    REQUEST_COUNT.labels(endpoint="ocr_process_pending", method="POST", status="200").inc()
    return BatchResponse(processed=processed)


@router.post("/{document_id}/retry", response_model=OcrRetryResponse, summary="Reset and rerun OCR for a document")
def retry_document(
    document_id: str,
    orchestrator: OcrOrchestrator = Depends(require_orchestrator),
) -> OcrRetryResponse:
    canonical = parse_id(document_id)
    if canonical is None or orchestrator.repository.get(canonical) is None:
        raise HTTPException(status_code=404, detail="Document not found")
    success = orchestrator.reprocess(canonical)
    REQUEST_COUNT.labels(endpoint="ocr_retry", method="POST", status="200").inc()
    return OcrRetryResponse(success=success)


__all__ = ["router"]
