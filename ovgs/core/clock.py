"""
Wall-clock helpers. SQLite hands back naive datetimes even for timezone-aware
columns; everything stored is UTC, so we re-attach it on the way out.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)
