"""Bulk ingestion of every PDF below a directory."""

from __future__ import annotations

import fnmatch
import threading
from pathlib import Path

from docrepo.core.errors import ConfigurationError, OperationCancelled
from docrepo.core.logging import get_logger
from docrepo.ingest.service import IngestionService
from docrepo.ingest.types import IngestStats

logger = get_logger(__name__)


def ingest_directory(
    service: IngestionService,
    root: Path,
    source_module: str,
    pattern: str = "*.pdf",
    cancel: threading.Event | None = None,
) -> IngestStats:
    """Ingest matching files under ``root``; the item id is the path relative to ``root``.

    File names are matched against ``pattern`` without regard to case.

    A file that fails is logged and counted, and the walk carries on.
    Configuration errors and cancellation stop the walk.
    """
    base = root.expanduser().resolve()
    if not base.is_dir():
        raise NotADirectoryError(f"Not a directory: {base}")

    stats = IngestStats()
    wanted = pattern.lower()
    for path in sorted(base.rglob("*")):
        if not path.is_file() or not fnmatch.fnmatchcase(path.name.lower(), wanted):
            continue
        item_id = path.relative_to(base).as_posix()
        try:
            with path.open("rb") as fh:
                outcome = service.ingest_external_pdf(fh, path.name, source_module, item_id, cancel=cancel)
        except (ConfigurationError, OperationCancelled):
            raise
        except Exception as exc:
            logger.exception("Failed to ingest %s: %s", path, exc)
            stats.failed += 1
            continue
        stats.record(outcome)
    logger.info("Bulk ingest of %s finished: %s", base, stats.to_dict())
    return stats


__all__ = ["ingest_directory"]
