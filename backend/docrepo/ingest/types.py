"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class IngestStatus(str, Enum):
    """What an ingestion call did with the bytes it was given."""

    CREATED = "created"
    DEDUPLICATED = "deduplicated"
    DISABLED = "disabled"


@dataclass(slots=True, frozen=True)
class IngestOutcome:
    """Result of one ingestion call; ``document_id`` is None only when ingestion is disabled."""

    status: IngestStatus
    document_id: str | None

    @classmethod
    def disabled(cls) -> "IngestOutcome":
        return cls(status=IngestStatus.DISABLED, document_id=None)

    @property
    def ingested(self) -> bool:
        return self.status is not IngestStatus.DISABLED


@dataclass(slots=True)
class IngestStats:
    """Aggregated statistics for a bulk ingest."""

    processed: int = 0
    deduplicated: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: IngestOutcome) -> None:
        if outcome.status is IngestStatus.CREATED:
            self.processed += 1
        elif outcome.status is IngestStatus.DEDUPLICATED:
            self.deduplicated += 1
        else:
            self.skipped += 1

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "deduplicated": self.deduplicated,
            "skipped": self.skipped,
            "failed": self.failed,
        }


__all__ = ["IngestStatus", "IngestOutcome", "IngestStats"]
