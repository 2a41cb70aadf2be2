"""
Time helpers.

Every timestamp is stored as naive UTC so that values read back from SQLite
compare cleanly with values produced here.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt):
    """Convert a datetime to naive UTC. Naive input is assumed to be UTC already."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
