"""
Time helpers.

All persisted timestamps are timezone-aware UTC. Calendar dates (trip
dates, document number prefixes) use the local date.
"""

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def today() -> date:
    return date.today()
