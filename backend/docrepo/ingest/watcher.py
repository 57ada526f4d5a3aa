"""Drop-folder watcher that ingests PDFs as they arrive."""

from __future__ import annotations

import threading
from pathlib import Path

from watchdog.events import FileSystemEvent, PatternMatchingEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from docrepo.core.errors import ConfigurationError
from docrepo.core.logging import get_logger
from docrepo.ingest.service import IngestionService

logger = get_logger(__name__)

DEFAULT_SETTLE_SECONDS = 2.0


class DropFolderHandler(PatternMatchingEventHandler):
    """Forward PDFs to the ingestion service once they have finished arriving.

    A file moved into the folder is complete and is ingested at once. A file
    written in place is ingested when the writer closes it, or after
    ``settle_seconds`` pass with no further writes on platforms that do not
    report close events.
    """

    def __init__(
        self,
        service: IngestionService,
        root: Path,
        source_module: str,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
    ) -> None:
        super().__init__(
            patterns=["*.pdf"],
            ignore_directories=True,
            case_sensitive=False,
        )
        self.service = service
        self.root = root
        self.source_module = source_module
        self.settle_seconds = settle_seconds
        self._timers: dict[Path, threading.Timer] = {}
        self._lock = threading.Lock()

    def on_created(self, event: FileSystemEvent) -> None:
        self.schedule(Path(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        self.schedule(Path(event.src_path))

    def on_closed(self, event: FileSystemEvent) -> None:
        self.settle(Path(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        with self._lock:
            stale = self._timers.pop(Path(event.src_path), None)
        if stale is not None:
            stale.cancel()
        destination = Path(event.dest_path)
        if destination.suffix.lower() == ".pdf":
            self.settle(destination)

    def schedule(self, path: Path) -> None:
        """Restart the quiet-period timer for a file that is still being written."""
        timer = threading.Timer(self.settle_seconds, self.settle, args=(path,))
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(path, None)
            self._timers[path] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def settle(self, path: Path) -> None:
        with self._lock:
            timer = self._timers.pop(path, None)
        if timer is not None:
            timer.cancel()
        self.ingest(path)

    def pending(self) -> list[Path]:
        with self._lock:
            return sorted(self._timers)

    def cancel_pending(self) -> None:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()

    def ingest(self, path: Path) -> None:
        try:
            item_id = path.resolve().relative_to(self.root).as_posix()
        except ValueError:
            item_id = path.name
        try:
            with path.open("rb") as fh:
                outcome = self.service.ingest_external_pdf(fh, path.name, self.source_module, item_id)
        except ConfigurationError:
            logger.exception("Drop folder %s cannot create documents until configuration is fixed", self.root)
        except OSError as exc:
            logger.warning("Could not read dropped file %s: %s", path, exc)
        except Exception:
            logger.exception("Failed to ingest dropped file %s", path)
        else:
            logger.info("Dropped file %s -> %s %s", path, outcome.status.value, outcome.document_id)


class DropFolderWatcher:
    """High-level wrapper around a watchdog observer for one drop folder."""

    def __init__(
        self,
        service: IngestionService,
        folder: Path,
        source_module: str,
        recursive: bool = True,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
    ) -> None:
        self.folder = folder.expanduser().resolve()
        self.handler = DropFolderHandler(service, self.folder, source_module, settle_seconds=settle_seconds)
        self.recursive = recursive
        self._observer: BaseObserver = Observer()
        self._lock = threading.Lock()
        self._started = False

    def start(self) -> None:
        with self._lock:
            if self._started:
                return
            self._observer.schedule(self.handler, str(self.folder), recursive=self.recursive)
            self._observer.start()
            self._started = True
            logger.info("Watching %s for PDFs", self.folder)

    def stop(self) -> None:
        with self._lock:
            if not self._started:
                return
            self._observer.stop()
            self._observer.join(timeout=5)
            self.handler.cancel_pending()
            self._started = False


__all__ = ["DEFAULT_SETTLE_SECONDS", "DropFolderHandler", "DropFolderWatcher"]
