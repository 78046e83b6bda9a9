"""
Time helpers - every instant handled by the service is timezone-aware.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def now_in(tz_name: str) -> datetime:
    """Current time in the named IANA zone (e.g., "America/Sao_Paulo")."""
    return datetime.now(ZoneInfo(tz_name))


def as_utc(value: datetime) -> datetime:
    """Normalise an instant for comparison; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
