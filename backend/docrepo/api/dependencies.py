"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from docrepo.core.config import Settings, get_settings
from docrepo.db.documents import DocumentRepository, OcrStateStore
from docrepo.db.sqlite import SQLiteDatabase
from docrepo.ingest.service import IngestionService
from docrepo.ocr.orchestrator import OcrOrchestrator
from docrepo.ocr.runner import OcrmypdfRunner, TextExtractor
from docrepo.retrieval import SearchService
from docrepo.storage.blob_store import FileSystemBlobStore

_DB: SQLiteDatabase | None = None
_BLOB_STORE: FileSystemBlobStore | None = None
_INGESTION: IngestionService | None = None
_EXTRACTOR: TextExtractor | None = None
_ORCHESTRATOR: OcrOrchestrator | None = None
_SEARCH_SERVICE: SearchService | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_database() -> SQLiteDatabase:
    global _DB
    if _DB is None:
        settings = get_app_settings()
        db = SQLiteDatabase(settings.db_path)
        db.ensure_schema()
        _DB = db
    return _DB


def get_blob_store() -> FileSystemBlobStore:
    global _BLOB_STORE
    if _BLOB_STORE is None:
        _BLOB_STORE = FileSystemBlobStore(get_app_settings().blob_root)
    return _BLOB_STORE


def get_repository() -> DocumentRepository:
    return DocumentRepository(get_database())


def get_ingestion_service() -> IngestionService:
    global _INGESTION
    if _INGESTION is None:
        _INGESTION = IngestionService(
            repository=get_repository(),
            blob_store=get_blob_store(),
            settings=get_app_settings(),
        )
    return _INGESTION


def get_extractor() -> TextExtractor:
    """Built on first use; raises ConfigurationError when ocrmypdf cannot be found."""
    global _EXTRACTOR
    if _EXTRACTOR is None:
        _EXTRACTOR = OcrmypdfRunner(get_blob_store(), get_app_settings())
    return _EXTRACTOR


def get_orchestrator() -> OcrOrchestrator:
    global _ORCHESTRATOR
    if _ORCHESTRATOR is None:
        db = get_database()
        _ORCHESTRATOR = OcrOrchestrator(
            repository=DocumentRepository(db),
            state=OcrStateStore(db),
            extractor=get_extractor(),
            settings=get_app_settings(),
        )
    return _ORCHESTRATOR


def get_search_service() -> SearchService:
    global _SEARCH_SERVICE
    if _SEARCH_SERVICE is None:
        _SEARCH_SERVICE = SearchService(db=get_database(), settings=get_app_settings())
    return _SEARCH_SERVICE


__all__ = [
    "get_app_settings",
    "get_database",
    "get_blob_store",
    "get_repository",
    "get_ingestion_service",
    "get_extractor",
    "get_orchestrator",
    "get_search_service",
]
