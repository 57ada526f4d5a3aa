"""Content hashing used as the deduplication key."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import BinaryIO

_CHUNK_SIZE = 64 * 1024


def sha256_bytes(data: bytes) -> str:
    """Return hex digest for bytes input."""
    return hashlib.sha256(data).hexdigest()


def sha256_stream(stream: BinaryIO) -> str:
    """Return hex digest of a binary stream read from its current position to EOF."""
    h = hashlib.sha256()
    for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
        h.update(chunk)
    return h.hexdigest()


def sha256_file(path: Path) -> str:
    """Return hex digest for file contents."""
    with path.open("rb") as fh:
        return sha256_stream(fh)


__all__ = ["sha256_bytes", "sha256_stream", "sha256_file"]
