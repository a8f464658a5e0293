"""Small helpers with no project dependencies."""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Current UTC time without tzinfo.

    Every stored timestamp is naive UTC so SQLite and PostgreSQL columns
    compare the same way.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
