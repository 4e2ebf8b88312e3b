"""Last-writer-wins conflict resolution shared by every entity write path."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..core.time import ensure_utc, utc_now

STALE_UPDATE = "stale_update"


@dataclass(frozen=True)
class Resolution:
    accepted: bool
    reason: Optional[str] = None


def effective_incoming_time(
    declared: Optional[datetime],
    client_timestamp: Optional[datetime],
    now: Optional[datetime] = None,
) -> datetime:
    """data.updatedAt, else clientTimestamp, else server now."""
    if declared is not None:
        return ensure_utc(declared)
    if client_timestamp is not None:
        return ensure_utc(client_timestamp)
    return now or utc_now()


def resolve_write(existing_updated_at: Optional[datetime], incoming: datetime) -> Resolution:
    """Reject when the stored row is at least as new as the incoming write."""
    if existing_updated_at is not None and ensure_utc(incoming) <= ensure_utc(existing_updated_at):
        return Resolution(accepted=False, reason=STALE_UPDATE)
    return Resolution(accepted=True)


def next_stamp(previous: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    """Server acceptance time, strictly after the row's previous stamp."""
    stamp = now or utc_now()
    if previous is not None:
        floor = ensure_utc(previous) + timedelta(microseconds=1)
        if stamp < floor:
            stamp = floor
    return stamp
