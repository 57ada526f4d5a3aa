"""PDF ingestion: dedup by content hash, store once, link every caller."""

from .service import IngestionService
from .types import IngestOutcome, IngestStats, IngestStatus

__all__ = ["IngestionService", "IngestOutcome", "IngestStats", "IngestStatus"]
