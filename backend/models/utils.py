"""Shared utilities for ORM models."""

import base64
import uuid
from datetime import datetime, timezone


def generate_id() -> str:
    """Generate a 26-character lowercase base32 identifier."""
    return base64.b32encode(uuid.uuid4().bytes).decode("ascii").lower().rstrip("=")


def get_millis() -> int:
    """Current UTC time in epoch milliseconds."""
    return to_millis(datetime.now(timezone.utc))


def to_millis(value: datetime | int) -> int:
    """Convert a datetime (naive values are treated as UTC) to epoch milliseconds.

    Integers are assumed to already be epoch milliseconds and are returned unchanged.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    return int(value)
