"""Shared helpers for Ledgerman tests."""

from datetime import datetime, timezone as dt_timezone


def at(day: int, hour: int = 9) -> datetime:
    """Aware business datetime in January 2024."""
    return datetime(2024, 1, day, hour, 0, tzinfo=dt_timezone.utc)
