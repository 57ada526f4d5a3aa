"""Ingestion of PDFs handed over by other subsystems."""

from __future__ import annotations

import io
import sqlite3
import threading
from datetime import datetime
from pathlib import PurePosixPath
from typing import BinaryIO, Callable

from docrepo.core.config import Settings
from docrepo.core.errors import ConfigurationError, check_cancelled
from docrepo.core.logging import ctx, get_logger
from docrepo.core.metrics import INGEST_TOTAL
from docrepo.db.documents import DocumentRepository, NewDocument
from docrepo.db.sqlite import is_unique_violation
from docrepo.ingest.types import IngestOutcome, IngestStatus
from docrepo.storage.blob_store import FileSystemBlobStore
from docrepo.utils.hashing import sha256_bytes
from docrepo.utils.ids import new_id
from docrepo.utils.text import safe_file_name
from docrepo.utils.time import utc_now

logger = get_logger(__name__)

DEFAULT_FILE_NAME = "document.pdf"
# A lost create race is resolved by looking the hash up again; more than a
# couple of rounds means something other than a race is going on.
_MAX_CREATE_ATTEMPTS = 3
_READ_CHUNK = 64 * 1024


class IngestionService:
    """Hash, dedup, store-or-reuse, link, and record new documents."""

    def __init__(
        self,
        repository: DocumentRepository,
        blob_store: FileSystemBlobStore,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repository = repository
        self.blob_store = blob_store
        self.settings = settings
        self._clock = clock

    def ingest_external_pdf(
        self,
        stream: BinaryIO,
        original_file_name: str | None,
        source_module: str,
        source_item_id: str,
        cancel: threading.Event | None = None,
    ) -> IngestOutcome:
        if not self.settings.ingestion_enabled:
            logger.debug(
                "Ingestion disabled; skipping file from module %s item %s",
                source_module,
                source_item_id,
            )
            INGEST_TOTAL.labels(outcome=IngestStatus.DISABLED.value).inc()
            return IngestOutcome.disabled()

        if source_module is None or not source_module.strip():
            raise ValueError("Source module is required.")
        if source_item_id is None or not source_item_id.strip():
            raise ValueError("Source item id is required.")

        module = source_module.strip()
        item_id = source_item_id.strip()
        file_name = safe_file_name(original_file_name, default=DEFAULT_FILE_NAME)

        payload = _read_fully(stream, cancel)
        digest = sha256_bytes(payload)

        for attempt in range(_MAX_CREATE_ATTEMPTS):
            existing = self.repository.find_active_by_hash(digest)
            if existing is not None:
                linked = self.repository.ensure_link(existing.id, module, item_id, self._clock())
                logger.info(
                    "Deduplicated PDF for module %s item %s onto document %s (new link: %s)",
                    module,
                    item_id,
                    existing.id,
                    linked,
                    extra=ctx(document_id=existing.id, outcome="deduplicated", source_module=module),
                )
                INGEST_TOTAL.labels(outcome=IngestStatus.DEDUPLICATED.value).inc()
                return IngestOutcome(status=IngestStatus.DEDUPLICATED, document_id=existing.id)

            office_category_id, document_category_id = self._require_classification()
            check_cancelled(cancel)

            now = self._clock()
            storage_path = self.blob_store.save(io.BytesIO(payload), file_name, now, cancel)
            document = NewDocument(
                id=new_id(),
                content_hash=digest,
                storage_path=storage_path,
                subject=PurePosixPath(file_name).stem or file_name,
                original_file_name=file_name,
                file_size_bytes=len(payload),
                office_category_id=office_category_id,
                document_category_id=document_category_id,
                created_by=self.settings.ingestion_user_id.strip() or "system",
                created_at=now,
            )
            try:
                self.repository.create_with_link(document, module, item_id)
            except sqlite3.IntegrityError as exc:
                self.blob_store.delete(storage_path)
                if not is_unique_violation(exc):
                    raise
                if attempt == _MAX_CREATE_ATTEMPTS - 1:
                    raise
                logger.info("Document with hash %s was created concurrently; resolving again", digest)
                continue
            except BaseException:
                self.blob_store.delete(storage_path)
                raise

            logger.info(
                "Ingested external PDF for module %s item %s into document %s",
                module,
                item_id,
                document.id,
                extra=ctx(document_id=document.id, outcome="created", source_module=module),
            )
            INGEST_TOTAL.labels(outcome=IngestStatus.CREATED.value).inc()
            return IngestOutcome(status=IngestStatus.CREATED, document_id=document.id)

    def _require_classification(self) -> tuple[int, int]:
        office = self.settings.ingestion_office_category_id
        if office is None:
            logger.error("Refusing to create a document: ingestion.office_category_id is not configured")
            raise ConfigurationError("Ingestion requires ingestion.office_category_id to be configured.")
        category = self.settings.ingestion_document_category_id
        if category is None:
            logger.error("Refusing to create a document: ingestion.document_category_id is not configured")
            raise ConfigurationError("Ingestion requires ingestion.document_category_id to be configured.")
        return office, category


def _read_fully(stream: BinaryIO, cancel: threading.Event | None) -> bytes:
    if stream.seekable():
        stream.seek(0)
    buffer = io.BytesIO()
    for chunk in iter(lambda: stream.read(_READ_CHUNK), b""):
        check_cancelled(cancel)
        buffer.write(chunk)
    return buffer.getvalue()


__all__ = ["IngestionService", "DEFAULT_FILE_NAME"]
