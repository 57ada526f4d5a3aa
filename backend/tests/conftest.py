"""Test fixtures for the document repository."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from docrepo.core.config import Settings  # noqa: E402
from docrepo.db.documents import DocumentRepository, OcrStateStore  # noqa: E402
from docrepo.db.sqlite import SQLiteDatabase  # noqa: E402
from docrepo.ingest.service import IngestionService  # noqa: E402
from docrepo.models.entities import Document  # noqa: E402
from docrepo.ocr.runner import OcrResult, TextExtractor  # noqa: E402
from docrepo.storage.blob_store import FileSystemBlobStore  # noqa: E402


def _reset_singletons() -> None:
    from docrepo.api import dependencies as deps
    from docrepo.core.config import get_settings

    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    deps._DB = None
    deps._BLOB_STORE = None
    deps._INGESTION = None
    deps._EXTRACTOR = None
    deps._ORCHESTRATOR = None
    deps._SEARCH_SERVICE = None


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("DOCREPO_DB_PATH", str(tmp_path / "docrepo.db"))
    monkeypatch.setenv("DOCREPO_BLOB_ROOT", str(tmp_path / "blobs"))
    monkeypatch.setenv("DOCREPO_OCR_WORK_ROOT", str(tmp_path / "ocr-work"))
    monkeypatch.setenv("DOCREPO_INGESTION_OFFICE_CATEGORY_ID", "1")
    monkeypatch.setenv("DOCREPO_INGESTION_DOCUMENT_CATEGORY_ID", "2")
    monkeypatch.delenv("DOCREPO_CONFIG", raising=False)
    monkeypatch.delenv("DOCREPO_INGESTION_ENABLED", raising=False)

    _reset_singletons()
    yield
    _reset_singletons()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        db_path=tmp_path / "core.db",
        blob_root=tmp_path / "core-blobs",
        ocr_work_root=tmp_path / "core-ocr",
        ingestion_office_category_id=1,
        ingestion_document_category_id=2,
    )


@pytest.fixture
def db(settings: Settings) -> SQLiteDatabase:
    database = SQLiteDatabase(settings.db_path)
    database.ensure_schema()
    yield database
    database.close()


@pytest.fixture
def blob_store(settings: Settings) -> FileSystemBlobStore:
    return FileSystemBlobStore(settings.blob_root)


@pytest.fixture
def repository(db: SQLiteDatabase) -> DocumentRepository:
    return DocumentRepository(db)


@pytest.fixture
def state_store(db: SQLiteDatabase) -> OcrStateStore:
    return OcrStateStore(db)


@pytest.fixture
def ingestion(repository: DocumentRepository, blob_store: FileSystemBlobStore, settings: Settings) -> IngestionService:
    return IngestionService(repository, blob_store, settings)


class StubExtractor(TextExtractor):
    """Returns scripted outcomes per document id; a callable or exception is applied on run."""

    def __init__(self, default: OcrResult | None = None) -> None:
        self.default = default or OcrResult.ok("stub text")
        self.outcomes: dict[str, object] = {}
        self.calls: list[str] = []

    def run(self, document: Document, cancel=None) -> OcrResult:
        self.calls.append(document.id)
        outcome = self.outcomes.get(document.id, self.default)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture
def extractor() -> StubExtractor:
    return StubExtractor()


def pdf_bytes(label: str, size: int = 0) -> bytes:
    """Distinct fake PDF payloads; content is never parsed by ingestion."""
    body = f"%PDF-1.4\n% {label}\n".encode("utf-8")
    if size > len(body):
        body += b"0" * (size - len(body))
    return body
