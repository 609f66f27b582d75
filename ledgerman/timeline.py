"""
Business-time helpers shared by the append and rebuild paths.
"""

from datetime import date, datetime, time

from django.conf import settings
from django.utils import timezone


def as_business_datetime(value) -> datetime:
    """
    Normalize a business date to a datetime that matches USE_TZ.

    Accepts a datetime (naive values are taken in the current timezone),
    a date (midnight) or None (now).
    """
    if value is None:
        return timezone.now()
    if not isinstance(value, datetime):
        if not isinstance(value, date):
            raise TypeError(f"Expected date or datetime, got {type(value).__name__}")
        value = datetime.combine(value, time.min)
    if settings.USE_TZ and timezone.is_naive(value):
        return timezone.make_aware(value)
    if not settings.USE_TZ and timezone.is_aware(value):
        return timezone.make_naive(value)
    return value


def replay_key(candidate) -> tuple:
    """Sort key for replay: business date, then the document's creation time."""
    return (candidate.transaction_date, candidate.recorded_at)
