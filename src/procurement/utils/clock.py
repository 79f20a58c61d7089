"""Clock helpers shared by the order state machine and the timer scanner.

Persistence providers differ in whether they hand back timezone-aware
datetimes (memory) or naive ones (SQL), so every comparison goes through
``as_utc``.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` as an aware UTC datetime (naive values are assumed UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
