"""SQLite persistence: connection wrapper, schema and document repositories."""

from .sqlite import SQLiteDatabase, is_unique_violation
from .documents import DocumentRepository, OcrStateStore

__all__ = ["SQLiteDatabase", "is_unique_violation", "DocumentRepository", "OcrStateStore"]
