"""Single-attempt text extraction for one stored PDF.

The runner never retries on its own; retry policy lives in the orchestrator.
"""

from __future__ import annotations

import os
import shutil
import threading
import traceback
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import fitz  # PyMuPDF

from docrepo.core.config import Settings
from docrepo.core.errors import ConfigurationError, OperationCancelled, check_cancelled
from docrepo.core.logging import get_logger
from docrepo.models.entities import Document
from docrepo.ocr.invoker import ProcessInvoker, ProcessResult
from docrepo.storage.blob_store import FileSystemBlobStore
from docrepo.utils.ids import run_token
from docrepo.utils.text import clean_banners, has_useful_text

logger = get_logger(__name__)

_COPY_CHUNK = 64 * 1024

# ocrmypdf modes tried in order until one yields usable sidecar text.
OCR_PASSES: tuple[tuple[str, str], ...] = (
    ("skip-text", "--skip-text"),
    ("force-ocr", "--force-ocr"),
    ("redo-ocr", "--redo-ocr"),
)


@dataclass(slots=True, frozen=True)
class OcrResult:
    success: bool
    text: str | None = None
    error: str | None = None
    log_file: Path | None = None

    @classmethod
    def ok(cls, text: str, log_file: Path | None = None) -> "OcrResult":
        return cls(success=True, text=text, log_file=log_file)

    @classmethod
    def fail(cls, error: str, log_file: Path | None = None) -> "OcrResult":
        return cls(success=False, error=error, log_file=log_file)


class TextExtractor(ABC):
    """Extracts text from one document's current bytes in a single attempt."""

    @abstractmethod
    def run(self, document: Document, cancel: threading.Event | None = None) -> OcrResult:
        raise NotImplementedError


class EmbeddedTextReader:
    """Reads the text layer a PDF already carries, if any."""

    def read(self, pdf_path: Path) -> str | None:
        try:
            with fitz.open(pdf_path) as doc:
                pages = [page.get_text("text", sort=True) for page in doc]
        except Exception as exc:  # noqa: BLE001 - unreadable PDFs simply go to OCR
            logger.debug("No embedded text read from %s: %s", pdf_path.name, exc)
            return None
        return "\n\n".join(pages)


def resolve_executable(configured: str) -> str:
    """Resolve the OCR executable now, so a bad setting fails at construction."""
    value = (configured or "").strip()
    if not value:
        raise ConfigurationError("OCR executable is not configured.")
    if os.sep in value or "/" in value:
        candidate = Path(value).expanduser()
        if not candidate.is_file():
            raise ConfigurationError(f"OCR executable not found at {candidate}.")
        return str(candidate.resolve())
    found = shutil.which(value)
    if found is None:
        raise ConfigurationError(f"OCR executable {value!r} was not found on PATH.")
    return found


class OcrmypdfRunner(TextExtractor):
    """Runs ocrmypdf against a private copy of the stored PDF and reads its sidecar text."""

    def __init__(
        self,
        blob_store: FileSystemBlobStore,
        settings: Settings,
        invoker: ProcessInvoker | None = None,
        embedded_reader: EmbeddedTextReader | None = None,
    ) -> None:
        self.blob_store = blob_store
        self.executable = resolve_executable(settings.ocr_executable)
        self.timeout = settings.ocr_timeout_seconds
        self.work_root = settings.ocr_work_root.expanduser().resolve()
        self.input_dir = settings.ocr_input_path.expanduser().resolve()
        self.output_dir = settings.ocr_output_path.expanduser().resolve()
        self.logs_dir = settings.ocr_logs_path.expanduser().resolve()
        for directory in (self.work_root, self.input_dir, self.output_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)
        self.invoker = invoker or ProcessInvoker()
        self.embedded_reader = embedded_reader or EmbeddedTextReader()

    def run(self, document: Document, cancel: threading.Event | None = None) -> OcrResult:
        stem = f"{document.id}-{run_token()}"
        input_pdf = self.input_dir / f"{stem}.pdf"
        output_pdf = self.output_dir / f"{stem}.pdf"
        sidecar = self.output_dir / f"{stem}.txt"
        log_file = self.logs_dir / f"{stem}.log"
        latest_log = self.logs_dir / f"{document.id}.log"

        try:
            self._copy_to_work_area(document, input_pdf, cancel)

            embedded = self.embedded_reader.read(input_pdf)
            if has_useful_text(embedded):
                self._write_log(log_file, latest_log, "Embedded text extracted; OCR skipped.", append=False)
                return OcrResult.ok(clean_banners(embedded), log_file)

            for index, (label, flag) in enumerate(OCR_PASSES):
                sidecar.unlink(missing_ok=True)
                result = self.invoker.run(
                    self.executable,
                    [flag, "--sidecar", str(sidecar), str(input_pdf), str(output_pdf)],
                    self.work_root,
                    timeout=self.timeout,
                    cancel=cancel,
                )
                self._write_log(log_file, latest_log, _describe_pass(label, result), append=index > 0)

                content = _read_sidecar(sidecar)
                if content is None:
                    return OcrResult.fail(
                        f"ocrmypdf ({label}) did not produce a sidecar file. Exit {result.exit_code}. See {log_file}",
                        log_file,
                    )
                if has_useful_text(content):
                    return OcrResult.ok(clean_banners(content), log_file)

            return OcrResult.fail(f"ocrmypdf produced unusable text. See {log_file}", log_file)
        except OperationCancelled:
            raise
        except Exception as exc:
            logger.exception("OCR run for document %s failed", document.id)
            self._write_log(log_file, latest_log, traceback.format_exc(), append=log_file.exists())
            return OcrResult.fail(f"OCR failed: {exc}. See {log_file}", log_file)
        finally:
            for artifact in (input_pdf, output_pdf, sidecar):
                try:
                    artifact.unlink(missing_ok=True)
                except OSError as exc:
                    logger.warning("Could not remove OCR work file %s: %s", artifact, exc)

    def _copy_to_work_area(self, document: Document, destination: Path, cancel: threading.Event | None) -> None:
        with self.blob_store.open_read(document.storage_path) as source, destination.open("xb") as target:
            for chunk in iter(lambda: source.read(_COPY_CHUNK), b""):
                check_cancelled(cancel)
                target.write(chunk)

    def _write_log(self, log_file: Path, latest_log: Path, content: str, append: bool) -> None:
        try:
            with log_file.open("a" if append else "w", encoding="utf-8") as fh:
                if append:
                    fh.write("\n")
                fh.write(content)
            shutil.copyfile(log_file, latest_log)
        except OSError as exc:
            logger.warning("Could not write OCR log %s: %s", log_file, exc)


def _describe_pass(label: str, result: ProcessResult) -> str:
    return f"{label.upper()} exit={result.exit_code}\n{result.stdout}\n{result.stderr}"


def _read_sidecar(sidecar: Path) -> str | None:
    if not sidecar.is_file():
        return None
    content = sidecar.read_text(encoding="utf-8", errors="replace")
    return content if content.strip() else None


__all__ = [
    "OCR_PASSES",
    "OcrResult",
    "TextExtractor",
    "EmbeddedTextReader",
    "OcrmypdfRunner",
    "resolve_executable",
]
