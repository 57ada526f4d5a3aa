"""Durable path-addressed byte storage for PDF payloads."""

from .blob_store import FileSystemBlobStore

__all__ = ["FileSystemBlobStore"]
