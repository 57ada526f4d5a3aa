"""File-system blob store.

Blobs live under a configured root as ``{year}/{month}/{random}.pdf``. Callers
only ever see the relative path, so the root can move without touching stored
pointers. Every path handed back in is checked to stay under the root before
the file system is consulted.
"""

from __future__ import annotations

import re
import threading
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import BinaryIO

from docrepo.core.errors import BlobNotFoundError, BlobPathError, check_cancelled
from docrepo.core.logging import get_logger
from docrepo.utils.ids import opaque_name

logger = get_logger(__name__)

_CHUNK_SIZE = 64 * 1024
BLOB_EXTENSION = ".pdf"


class FileSystemBlobStore:
    """Stores PDF payloads on local disk under ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = root.expanduser().resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    def save(
        self,
        source: BinaryIO,
        suggested_file_name: str,
        as_of: datetime,
        cancel: threading.Event | None = None,
    ) -> str:
        """Copy ``source`` into a fresh blob and return its root-relative path.

        The destination is created exclusively; an existing file is never
        overwritten. A cancelled or failed copy removes the partial file.
        """
        as_of_utc = as_of.astimezone(timezone.utc) if as_of.tzinfo else as_of
        relative = PurePosixPath(
            f"{as_of_utc.year:04d}",
            f"{as_of_utc.month:02d}",
            f"{opaque_name()}{BLOB_EXTENSION}",
        )
        target = self.resolve(relative.as_posix())
        target.parent.mkdir(parents=True, exist_ok=True)

        try:
            with target.open("xb") as fh:
                for chunk in iter(lambda: source.read(_CHUNK_SIZE), b""):
                    check_cancelled(cancel)
                    fh.write(chunk)
                fh.flush()
        except FileExistsError:
            logger.error("Blob name collision at %s", relative)
            raise
        except BaseException:
            target.unlink(missing_ok=True)
            raise
        logger.debug("Stored blob %s for %s", relative, suggested_file_name)
        return relative.as_posix()

    def open_read(self, storage_path: str) -> BinaryIO:
        """Open a stored blob for reading; raises BlobNotFoundError when it is missing."""
        target = self.resolve(storage_path)
        try:
            return target.open("rb")
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as exc:
            raise BlobNotFoundError(storage_path) from exc

    def exists(self, storage_path: str) -> bool:
        try:
            return self.resolve(storage_path).is_file()
        except OSError:
            return False

    def delete(self, storage_path: str) -> bool:
        """Remove a blob; returns False when there was nothing to remove."""
        target = self.resolve(storage_path)
        try:
            target.unlink()
        except (FileNotFoundError, NotADirectoryError):
            return False
        logger.debug("Deleted blob %s", storage_path)
        return True

    def resolve(self, storage_path: str) -> Path:
        """Map a stored relative path to an absolute path under the root.

        Absolute paths, ``..`` segments and anything resolving outside the root
        are rejected with BlobPathError.
        """
        if not storage_path or not storage_path.strip():
            raise BlobPathError(storage_path or "", "empty path")
        normalized = storage_path.strip().replace("\\", "/")
        candidate = PurePosixPath(normalized)
        if candidate.is_absolute() or re.match(r"^[A-Za-z]:", normalized):
            raise BlobPathError(storage_path, "absolute paths are not accepted")
        if any(part == ".." for part in candidate.parts):
            raise BlobPathError(storage_path, "parent directory segments are not accepted")
        resolved = self.root.joinpath(*candidate.parts).resolve()
        if resolved != self.root and self.root not in resolved.parents:
            raise BlobPathError(storage_path)
        return resolved


__all__ = ["FileSystemBlobStore", "BLOB_EXTENSION"]
