"""Deduplicating PDF document repository with an OCR pipeline and full-text search."""

__version__ = "0.1.0"
