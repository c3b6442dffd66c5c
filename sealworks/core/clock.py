"""
clock.py - UTC wall clock.

Timestamps are stored as naive UTC so PostgreSQL and SQLite compare them
the same way.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
