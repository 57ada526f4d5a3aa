"""Tests for external PDF ingestion."""

from __future__ import annotations

import io
import threading
import time
from pathlib import Path

import pytest
from watchdog.events import FileClosedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from conftest import pdf_bytes
from docrepo.core.config import Settings
from docrepo.core.errors import ConfigurationError, OperationCancelled
from docrepo.db.documents import DocumentRepository
from docrepo.ingest.bulk import ingest_directory
from docrepo.ingest.service import IngestionService
from docrepo.ingest.types import IngestStatus
from docrepo.ingest.watcher import DropFolderHandler, DropFolderWatcher
from docrepo.models.entities import OcrStatus
from docrepo.storage.blob_store import FileSystemBlobStore
from docrepo.utils.hashing import sha256_bytes
from docrepo.utils.time import utc_now


def _blob_files(store: FileSystemBlobStore) -> list[Path]:
    return [path for path in store.root.rglob("*") if path.is_file()]


def test_new_content_creates_pending_document(
    ingestion: IngestionService,
    repository: DocumentRepository,
    blob_store: FileSystemBlobStore,
) -> None:
    payload = pdf_bytes("invoice", size=10 * 1024)
    outcome = ingestion.ingest_external_pdf(io.BytesIO(payload), "Invoice 2024.pdf", "  mail ", " msg-1 ")

    assert outcome.status is IngestStatus.CREATED
    assert outcome.ingested
    document = repository.get(outcome.document_id)
    assert document is not None
    assert document.content_hash == sha256_bytes(payload)
    assert document.subject == "Invoice 2024"
    assert document.original_file_name == "Invoice 2024.pdf"
    assert document.mime_type == "application/pdf"
    assert document.file_size_bytes == len(payload)
    assert document.office_category_id == 1
    assert document.document_category_id == 2
    assert document.created_by == "system"
    assert document.is_active and not document.is_deleted
    assert document.ocr_status is OcrStatus.PENDING
    assert document.ocr_failure_reason is None
    assert repository.get_text(document.id) is None

    with blob_store.open_read(document.storage_path) as fh:
        assert fh.read() == payload

    links = repository.links_for(document.id)
    assert [(link.source_module, link.source_item_id) for link in links] == [("mail", "msg-1")]


def test_same_item_twice_is_idempotent(ingestion: IngestionService, repository: DocumentRepository) -> None:
    payload = pdf_bytes("repeat")
    first = ingestion.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "mail", "msg-1")
    second = ingestion.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "mail", "msg-1")

    assert first.status is IngestStatus.CREATED
    assert second.status is IngestStatus.DEDUPLICATED
    assert second.document_id == first.document_id
    assert len(repository.links_for(first.document_id)) == 1


def test_cross_module_fan_in(
    ingestion: IngestionService,
    repository: DocumentRepository,
    blob_store: FileSystemBlobStore,
) -> None:
    payload = pdf_bytes("shared")
    first = ingestion.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "mail", "msg-1")
    second = ingestion.ingest_external_pdf(io.BytesIO(payload), "b.pdf", "tasks", "task-9")

    assert second.document_id == first.document_id
    links = repository.links_for(first.document_id)
    assert {(link.source_module, link.source_item_id) for link in links} == {("mail", "msg-1"), ("tasks", "task-9")}
    assert len(_blob_files(blob_store)) == 1


def test_module_match_ignores_case_but_item_does_not(
    ingestion: IngestionService, repository: DocumentRepository
) -> None:
    payload = pdf_bytes("case")
    first = ingestion.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "Mail", "MSG-1")
    ingestion.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "mail", "MSG-1")
    ingestion.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "mail", "msg-1")

    items = sorted(link.source_item_id for link in repository.links_for(first.document_id))
    assert items == ["MSG-1", "msg-1"]


def test_stream_is_read_from_the_start(ingestion: IngestionService, repository: DocumentRepository) -> None:
    payload = pdf_bytes("rewind")
    stream = io.BytesIO(payload)
    stream.seek(5)
    outcome = ingestion.ingest_external_pdf(stream, "a.pdf", "mail", "msg-1")
    assert repository.get(outcome.document_id).content_hash == sha256_bytes(payload)


@pytest.mark.parametrize(
    ("given", "expected_name", "expected_subject"),
    [
        ("../../etc/report.pdf", "report.pdf", "report"),
        ("C:\\Users\\me\\Scan.pdf", "Scan.pdf", "Scan"),
        (None, "document.pdf", "document"),
        ("   ", "document.pdf", "document"),
        ("..", "document.pdf", "document"),
    ],
)
def test_file_name_is_reduced_to_a_bare_name(
    ingestion: IngestionService,
    repository: DocumentRepository,
    given: str | None,
    expected_name: str,
    expected_subject: str,
) -> None:
    outcome = ingestion.ingest_external_pdf(io.BytesIO(pdf_bytes(repr(given))), given, "mail", "msg-1")
    document = repository.get(outcome.document_id)
    assert document.original_file_name == expected_name
    assert document.subject == expected_subject


@pytest.mark.parametrize(("module", "item"), [("", "msg-1"), ("   ", "msg-1"), ("mail", ""), ("mail", "  ")])
def test_blank_source_is_rejected(ingestion: IngestionService, module: str, item: str) -> None:
    with pytest.raises(ValueError):
        ingestion.ingest_external_pdf(io.BytesIO(pdf_bytes("x")), "a.pdf", module, item)


def test_disabled_ingestion_is_an_explicit_outcome(
    repository: DocumentRepository,
    blob_store: FileSystemBlobStore,
    settings: Settings,
    db,
) -> None:
    settings.ingestion_enabled = False
    service = IngestionService(repository, blob_store, settings)

    outcome = service.ingest_external_pdf(io.BytesIO(pdf_bytes("off")), "a.pdf", "mail", "msg-1")

    assert outcome.status is IngestStatus.DISABLED
    assert outcome.document_id is None
    assert not outcome.ingested
    assert db.query_one("SELECT COUNT(*) AS n FROM documents")["n"] == 0
    assert _blob_files(blob_store) == []


def test_missing_classification_blocks_creation_only(
    ingestion: IngestionService,
    repository: DocumentRepository,
    blob_store: FileSystemBlobStore,
    settings: Settings,
) -> None:
    payload = pdf_bytes("known")
    existing = ingestion.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "mail", "msg-1")

    settings.ingestion_office_category_id = None
    service = IngestionService(repository, blob_store, settings)

    with pytest.raises(ConfigurationError):
        service.ingest_external_pdf(io.BytesIO(pdf_bytes("new")), "b.pdf", "mail", "msg-2")
    assert len(_blob_files(blob_store)) == 1

    reused = service.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "tasks", "task-1")
    assert reused.status is IngestStatus.DEDUPLICATED
    assert reused.document_id == existing.document_id


def test_soft_deleted_content_is_ingested_again(
    ingestion: IngestionService, repository: DocumentRepository
) -> None:
    payload = pdf_bytes("again")
    first = ingestion.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "mail", "msg-1")
    assert repository.soft_delete(first.document_id, "tester", utc_now())

    second = ingestion.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "mail", "msg-1")
    assert second.status is IngestStatus.CREATED
    assert second.document_id != first.document_id


def test_failed_metadata_write_removes_the_new_blob(
    repository: DocumentRepository,
    blob_store: FileSystemBlobStore,
    settings: Settings,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def explode(*args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(repository, "create_with_link", explode)
    service = IngestionService(repository, blob_store, settings)

    with pytest.raises(RuntimeError):
        service.ingest_external_pdf(io.BytesIO(pdf_bytes("boom")), "a.pdf", "mail", "msg-1")
    assert _blob_files(blob_store) == []


class RacingRepository(DocumentRepository):
    """Misses the first lookup, as if a concurrent caller created the row in between."""

    def __init__(self, db) -> None:
        super().__init__(db)
        self.lookups = 0

    def find_active_by_hash(self, content_hash: str):
        self.lookups += 1
        if self.lookups == 1:
            return None
        return super().find_active_by_hash(content_hash)


def test_lost_create_race_resolves_to_the_winner(
    db,
    ingestion: IngestionService,
    blob_store: FileSystemBlobStore,
    settings: Settings,
) -> None:
    payload = pdf_bytes("race")
    winner = ingestion.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "mail", "msg-1")

    racing = RacingRepository(db)
    loser = IngestionService(racing, blob_store, settings)
    outcome = loser.ingest_external_pdf(io.BytesIO(payload), "a.pdf", "tasks", "task-1")

    assert outcome.status is IngestStatus.DEDUPLICATED
    assert outcome.document_id == winner.document_id
    assert racing.lookups == 2
    assert len(_blob_files(blob_store)) == 1
    assert len(racing.links_for(winner.document_id)) == 2


def test_cancelled_ingest_writes_nothing(ingestion: IngestionService, blob_store: FileSystemBlobStore, db) -> None:
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(OperationCancelled):
        ingestion.ingest_external_pdf(io.BytesIO(pdf_bytes("stop")), "a.pdf", "mail", "msg-1", cancel=cancel)
    assert db.query_one("SELECT COUNT(*) AS n FROM documents")["n"] == 0
    assert _blob_files(blob_store) == []


def test_ingest_directory_counts_outcomes(
    tmp_path: Path, ingestion: IngestionService, repository: DocumentRepository
) -> None:
    inbox = tmp_path / "inbox"
    (inbox / "2024").mkdir(parents=True)
    (inbox / "a.pdf").write_bytes(pdf_bytes("a"))
    (inbox / "2024" / "b.pdf").write_bytes(pdf_bytes("b"))
    (inbox / "2024" / "copy-of-a.pdf").write_bytes(pdf_bytes("a"))
    (inbox / "notes.txt").write_text("not a pdf")

    stats = ingest_directory(ingestion, inbox, "scanner")

    assert stats.to_dict() == {"processed": 2, "deduplicated": 1, "skipped": 0, "failed": 0}
    document = repository.find_active_by_hash(sha256_bytes(pdf_bytes("a")))
    items = sorted(link.source_item_id for link in repository.links_for(document.id))
    assert items == ["2024/copy-of-a.pdf", "a.pdf"]


def test_ingest_directory_requires_a_directory(tmp_path: Path, ingestion: IngestionService) -> None:
    with pytest.raises(NotADirectoryError):
        ingest_directory(ingestion, tmp_path / "missing", "scanner")


def test_drop_folder_handler_ingests_relative_item(
    tmp_path: Path, ingestion: IngestionService, repository: DocumentRepository
) -> None:
    folder = (tmp_path / "drop").resolve()
    (folder / "sub").mkdir(parents=True)
    dropped = folder / "sub" / "Letter.pdf"
    dropped.write_bytes(pdf_bytes("letter"))

    handler = DropFolderHandler(ingestion, folder, "dropbox")
    handler.ingest(dropped)

    document = repository.find_active_by_hash(sha256_bytes(pdf_bytes("letter")))
    assert document is not None
    assert document.subject == "Letter"
    assert [link.source_item_id for link in repository.links_for(document.id)] == ["sub/Letter.pdf"]


def test_drop_folder_handler_logs_unreadable_files(tmp_path: Path, ingestion: IngestionService, db) -> None:
    handler = DropFolderHandler(ingestion, tmp_path, "dropbox")
    handler.ingest(tmp_path / "vanished.pdf")
    assert db.query_one("SELECT COUNT(*) AS n FROM documents")["n"] == 0


def test_ingest_directory_matches_suffix_in_any_case(
    tmp_path: Path, ingestion: IngestionService, repository: DocumentRepository
) -> None:
    inbox = tmp_path / "inbox"
    inbox.mkdir()
    (inbox / "SCAN.PDF").write_bytes(pdf_bytes("upper"))
    (inbox / "Mixed.Pdf").write_bytes(pdf_bytes("mixed"))
    (inbox / "scan.pdf.txt").write_text("not a pdf")

    stats = ingest_directory(ingestion, inbox, "scanner")

    assert stats.processed == 2
    assert repository.find_active_by_hash(sha256_bytes(pdf_bytes("upper"))) is not None
    assert repository.find_active_by_hash(sha256_bytes(pdf_bytes("mixed"))) is not None


def _wait_for(condition, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.05)
    return condition()


def test_drop_folder_waits_for_the_writer_to_close(
    tmp_path: Path, ingestion: IngestionService, repository: DocumentRepository, db
) -> None:
    folder = tmp_path.resolve()
    payload = pdf_bytes("slow copy", size=200_000)
    dropped = folder / "slow.pdf"
    handler = DropFolderHandler(ingestion, folder, "dropbox", settle_seconds=60)

    dropped.write_bytes(payload[:10])
    handler.on_created(FileCreatedEvent(str(dropped)))
    handler.on_modified(FileModifiedEvent(str(dropped)))
    assert db.query_one("SELECT COUNT(*) AS n FROM documents")["n"] == 0

    with dropped.open("ab") as fh:
        fh.write(payload[10:])
    handler.on_modified(FileModifiedEvent(str(dropped)))
    handler.on_closed(FileClosedEvent(str(dropped)))

    assert handler.pending() == []
    assert repository.find_active_by_hash(sha256_bytes(payload)) is not None
    assert db.query_one("SELECT COUNT(*) AS n FROM documents")["n"] == 1


def test_drop_folder_ingests_after_writes_go_quiet(
    tmp_path: Path, ingestion: IngestionService, repository: DocumentRepository, db
) -> None:
    folder = tmp_path.resolve()
    payload = pdf_bytes("quiet", size=50_000)
    dropped = folder / "quiet.pdf"
    handler = DropFolderHandler(ingestion, folder, "dropbox", settle_seconds=0.5)

    dropped.write_bytes(payload[:10])
    handler.on_created(FileCreatedEvent(str(dropped)))
    with dropped.open("ab") as fh:
        fh.write(payload[10:])
    handler.on_modified(FileModifiedEvent(str(dropped)))

    assert _wait_for(lambda: repository.find_active_by_hash(sha256_bytes(payload)) is not None)
    assert db.query_one("SELECT COUNT(*) AS n FROM documents")["n"] == 1
    assert handler.pending() == []


def test_drop_folder_moved_in_file_is_ingested_at_once(
    tmp_path: Path, ingestion: IngestionService, repository: DocumentRepository, db
) -> None:
    folder = tmp_path.resolve()
    partial = folder / "incoming.part"
    partial.write_bytes(pdf_bytes("renamed"))
    final = folder / "Renamed.PDF"
    partial.rename(final)

    handler = DropFolderHandler(ingestion, folder, "dropbox", settle_seconds=60)
    handler.on_moved(FileMovedEvent(str(partial), str(final)))

    assert repository.find_active_by_hash(sha256_bytes(pdf_bytes("renamed"))) is not None

    final.rename(folder / "renamed.txt")
    handler.on_moved(FileMovedEvent(str(final), str(folder / "renamed.txt")))
    assert db.query_one("SELECT COUNT(*) AS n FROM documents")["n"] == 1


def test_drop_folder_watcher_stores_the_complete_file(
    tmp_path: Path, ingestion: IngestionService, repository: DocumentRepository, db
) -> None:
    folder = tmp_path / "drop"
    folder.mkdir()
    payload = pdf_bytes("two step", size=200_000)
    watcher = DropFolderWatcher(ingestion, folder, "dropbox", settle_seconds=3)
    watcher.start()
    try:
        with (folder / "scan.pdf").open("wb") as fh:
            fh.write(payload[:10])
            fh.flush()
            time.sleep(1)
            fh.write(payload[10:])
        assert _wait_for(lambda: repository.find_active_by_hash(sha256_bytes(payload)) is not None)
    finally:
        watcher.stop()

    assert repository.find_active_by_hash(sha256_bytes(payload[:10])) is None
    assert db.query_one("SELECT COUNT(*) AS n FROM documents")["n"] == 1
