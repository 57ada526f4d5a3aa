"""Exception types raised by the document repository core."""

from __future__ import annotations


class DocRepoError(Exception):
    """Base class for repository errors."""


class ConfigurationError(DocRepoError):
    """Required configuration is missing or points at something that does not exist."""


class BlobPathError(DocRepoError, ValueError):
    """Raised when a storage path is absolute, walks upwards, or escapes the blob root."""

    def __init__(self, path: str, reason: str = "escapes the blob root"):
        self.path = path
        super().__init__(f"Rejected storage path {path!r}: {reason}")


class BlobNotFoundError(DocRepoError, FileNotFoundError):
    """Raised when a stored blob is missing on disk."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Blob not found: {path}")


class OperationCancelled(DocRepoError):
    """Raised when the caller's cancellation event fires mid-operation."""


def check_cancelled(cancel) -> None:
    """Raise OperationCancelled when ``cancel`` (a threading.Event or None) is set."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelled("Operation cancelled")


__all__ = [
    "DocRepoError",
    "ConfigurationError",
    "BlobPathError",
    "BlobNotFoundError",
    "OperationCancelled",
    "check_cancelled",
]
