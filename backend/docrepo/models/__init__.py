"""Persisted entities and API data transfer objects."""

from .entities import Document, DocumentText, ExternalLink, OcrStatus

__all__ = ["Document", "DocumentText", "ExternalLink", "OcrStatus"]
