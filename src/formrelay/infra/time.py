"""Time utilities for consistent timestamp handling."""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def load_zone(zone_id: str) -> ZoneInfo | None:
    """Return the ZoneInfo for ``zone_id``, or None if the tz database lacks it."""
    if not zone_id:
        return None
    try:
        return ZoneInfo(zone_id)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        return None


def format_in_zone(instant: datetime, zone: ZoneInfo) -> str:
    """Render an aware instant as wall-clock time in ``zone``."""
    return instant.astimezone(zone).strftime(TIMESTAMP_FORMAT)
