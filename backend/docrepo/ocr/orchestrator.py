"""OCR state machine driver.

Pending is committed before the runner starts, so a crash mid-run leaves a
document that is still Pending and can simply be run again.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import Callable

from docrepo.core.config import Settings
from docrepo.core.errors import OperationCancelled, check_cancelled
from docrepo.core.logging import ctx, get_logger
from docrepo.core.metrics import OCR_DURATION, OCR_RUNS
from docrepo.db.documents import DocumentRepository, OcrStateStore
from docrepo.models.entities import OcrStatus
from docrepo.ocr.runner import OcrResult, TextExtractor
from docrepo.utils.text import truncate
from docrepo.utils.time import utc_now

logger = get_logger(__name__)


class OcrOrchestrator:
    """Reset, run, and commit OCR outcomes for single documents and sweeps."""

    def __init__(
        self,
        repository: DocumentRepository,
        state: OcrStateStore,
        extractor: TextExtractor,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.repository = repository
        self.state = state
        self.extractor = extractor
        self.settings = settings
        self._clock = clock

    def reprocess(self, document_id: str, cancel: threading.Event | None = None) -> bool:
        """Reset one document to Pending and run OCR; False if it is missing or deleted."""
        document = self.repository.get(document_id)
        if document is None or document.is_deleted:
            logger.info("Skipping OCR retry for missing or deleted document %s", document_id)
            return False
        if not self.state.mark_pending(document_id, self._clock()):
            return False
        return self._run_and_commit(document_id, cancel)

    def retry_failed(self, cancel: threading.Event | None = None) -> int:
        """Retry every Failed document; one document's error never stops the others."""
        document_ids = self.repository.ids_by_status(OcrStatus.FAILED)
        logger.info("Retrying OCR for %s failed documents", len(document_ids))
        return self._sweep(document_ids, self.reprocess, cancel)

    def process_pending(self, limit: int | None = None, cancel: threading.Event | None = None) -> int:
        """Run OCR for the oldest Pending documents (``ocr_batch_size`` by default)."""
        document_ids = self.repository.ids_by_status(OcrStatus.PENDING, limit or self.settings.ocr_batch_size)
        return self._sweep(document_ids, self._run_and_commit, cancel)

    def _sweep(
        self,
        document_ids: list[str],
        step: Callable[[str, threading.Event | None], bool],
        cancel: threading.Event | None,
    ) -> int:
        processed = 0
        for document_id in document_ids:
            check_cancelled(cancel)
            try:
                if step(document_id, cancel):
                    processed += 1
            except OperationCancelled:
                raise
            except Exception:
                logger.exception("OCR processing failed for document %s; continuing", document_id)
        return processed

    def _run_and_commit(self, document_id: str, cancel: threading.Event | None = None) -> bool:
        document = self.repository.get(document_id)
        if document is None or document.is_deleted or document.ocr_status is not OcrStatus.PENDING:
            return False

        started = time.perf_counter()
        try:
            result = self.extractor.run(document, cancel)
        except OperationCancelled:
            raise
        except Exception as exc:
            logger.exception("Unexpected error running OCR for document %s", document_id)
            result = OcrResult.fail(str(exc) or exc.__class__.__name__)
        finally:
            OCR_DURATION.observe(time.perf_counter() - started)

        now = self._clock()
        if result.success:
            text = truncate(result.text or "", self.settings.ocr_max_text_chars)
            committed = self.state.record_success(document_id, text, now)
            status = OcrStatus.SUCCEEDED
            logger.info("OCR succeeded for document %s", document_id, extra=ctx(document_id=document_id, ocr_status=status.value))
        else:
            reason = truncate(result.error or "OCR failed.", self.settings.ocr_max_failure_chars)
            committed = self.state.record_failure(document_id, reason, now)
            status = OcrStatus.FAILED
            logger.warning(
                "OCR failed for document %s: %s",
                document_id,
                reason,
                extra=ctx(document_id=document_id, ocr_status=status.value),
            )

        if committed:
            OCR_RUNS.labels(status=status.value).inc()
        else:
            logger.warning("OCR outcome for document %s was not recorded; it left Pending meanwhile", document_id)
        return committed


__all__ = ["OcrOrchestrator"]
