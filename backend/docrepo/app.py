"""FastAPI application setup for the document repository."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docrepo.api.dependencies import (
    get_app_settings,
    get_blob_store,
    get_database,
    get_ingestion_service,
    get_search_service,
)
from docrepo.api.routes_admin import router as admin_router
from docrepo.api.routes_documents import router as documents_router
from docrepo.api.routes_ocr import router as ocr_router
from docrepo.api.routes_query import router as query_router
from docrepo.core.logging import configure_logging

configure_logging()

app = FastAPI(
    title="Document Repository",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5174",
        "http://localhost:5174",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(documents_router, prefix="/documents", tags=["documents"])
app.include_router(ocr_router, prefix="/ocr", tags=["ocr"])
app.include_router(query_router, prefix="", tags=["query"])
app.include_router(admin_router, prefix="", tags=["admin"])


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup.

    The OCR runner is left lazy: a missing ocrmypdf should fail OCR requests,
    not take ingestion and search down with it.
    """
    get_app_settings()
    get_database()
    get_blob_store()
    get_ingestion_service()
    get_search_service()


@app.get("/health", tags=["admin"])
def health() -> dict[str, bool]:
    """Simple liveness check."""
    return {"ok": True}
