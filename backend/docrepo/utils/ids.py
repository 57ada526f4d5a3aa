"""ID helpers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Generate a random UUID4 in canonical string form."""
    return str(uuid.uuid4())


def opaque_name() -> str:
    """Random hex token for file names that must not be guessable or collide."""
    return uuid.uuid4().hex


def run_token(now: datetime | None = None) -> str:
    """Per-run suffix: UTC timestamp to the millisecond plus a random hex id."""
    moment = (now or datetime.now(tz=timezone.utc)).astimezone(timezone.utc)
    return f"{moment:%Y%m%d%H%M%S}{moment.microsecond // 1000:03d}-{uuid.uuid4().hex}"


def parse_id(value: str) -> str | None:
    """Return the canonical form of a UUID string, or None when it is not one."""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return None
