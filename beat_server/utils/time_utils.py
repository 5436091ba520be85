from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return the current UTC time as a naive datetime with millisecond precision.

    MongoDB stores BSON dates as naive UTC milliseconds, so values created here
    compare equal to what a later read returns. All storage timestamps
    (created_at, read_at, last_seen, ...) should come from this helper.
    """
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    """Format a stored (naive UTC) datetime as an ISO-8601 string with a Z suffix."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat(timespec='milliseconds') + 'Z'
