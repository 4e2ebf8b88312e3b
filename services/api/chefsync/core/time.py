"""UTC clock helpers shared by the sync engine.

All timestamps the server stores or emits are timezone-aware UTC. Client
supplied values without an offset are treated as UTC.
"""

from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_utc(value).isoformat()


def parse_iso(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (``Z`` suffix allowed) into aware UTC.

    Returns None for anything that is not a parseable timestamp.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip()
    if raw.endswith("Z") or raw.endswith("z"):
        raw = raw[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(raw))
    except ValueError:
        return None
