"""Text processing helpers."""

from __future__ import annotations

import re
from pathlib import PurePosixPath, PureWindowsPath

WHITESPACE_RE = re.compile(r"\s+")

# Placeholder lines ocrmypdf writes to the sidecar instead of real text.
OCR_BANNER_PREFIXES = ("ocr skipped on page", "prior ocr")


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def truncate(value: str | None, limit: int) -> str | None:
    """Cap a string at ``limit`` characters; None and short values pass through."""
    if value is None or len(value) <= limit:
        return value
    return value[:limit]


def has_useful_text(text: str | None) -> bool:
    """True when OCR output holds something other than blanks or ocrmypdf banners."""
    if text is None or not text.strip():
        return False
    return bool(clean_banners(text))


def clean_banners(text: str) -> str:
    """Drop ocrmypdf banner lines such as ``[OCR skipped on page 3]``."""
    kept = []
    for line in text.splitlines():
        probe = line.strip().strip("[]").strip().lower()
        if probe.startswith(OCR_BANNER_PREFIXES):
            continue
        kept.append(line)
    return "\n".join(kept).strip()


def safe_file_name(value: str | None, default: str = "document.pdf") -> str:
    """Reduce a caller-supplied file name to its bare name, whatever the path style."""
    if value is None or not value.strip():
        return default
    name = PureWindowsPath(PurePosixPath(value.strip()).name).name.strip()
    if not name or name in {".", ".."}:
        return default
    return name


__all__ = [
    "normalize",
    "truncate",
    "has_useful_text",
    "clean_banners",
    "safe_file_name",
]
