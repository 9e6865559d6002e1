"""Naive-UTC timestamps, matching the DATETIME columns the models use."""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current time in UTC without tzinfo (MySQL DATETIME is timezone-naive)."""
    return datetime.now(UTC).replace(tzinfo=None)
