"""Search API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from docrepo.api.dependencies import get_search_service
from docrepo.core.metrics import REQUEST_COUNT
from docrepo.models.dto import SearchHitResponse, SearchResponse
from docrepo.retrieval import SearchService

router = APIRouter()


@router.get("/search", response_model=SearchResponse, summary="Full-text search over subjects, tags and OCR text")
async def search(
    q: str = Query(default=""),
    limit: int | None = Query(default=None, ge=1, le=500),
    service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    hits = service.search(q, limit=limit)
    REQUEST_COUNT.labels(endpoint="search", method="GET", status="200").inc()
    return SearchResponse(query=q, results=[SearchHitResponse(**hit.to_dict()) for hit in hits])


__all__ = ["router"]
