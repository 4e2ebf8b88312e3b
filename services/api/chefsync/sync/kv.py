"""Opaque key-value sections stored in `user_sync_kv`.

Object sections (preferences, analytics, onboarding, userProfile) hold a JSON
object; log sections (wasteLog, consumedLog) hold a JSON array of entries.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from ..core.time import utc_now
from ..models import SyncKV

LOG_SECTIONS = ("wasteLog", "consumedLog")
OBJECT_SECTIONS = ("preferences", "analytics", "onboarding", "userProfile")
KV_SECTIONS = LOG_SECTIONS + OBJECT_SECTIONS


def _row(db: Session, user_id: str, section: str) -> Optional[SyncKV]:
    return db.execute(
        select(SyncKV).where(SyncKV.user_id == user_id, SyncKV.section == section)
    ).scalar_one_or_none()


def get_section(db: Session, user_id: str, section: str) -> Any:
    row = _row(db, user_id, section)
    return row.data if row is not None else None


def get_all(db: Session, user_id: str) -> dict[str, Any]:
    """Every KV section for the user; absent sections map to None."""
    rows = db.execute(select(SyncKV).where(SyncKV.user_id == user_id)).scalars().all()
    found = {r.section: r.data for r in rows}
    return {section: found.get(section) for section in KV_SECTIONS}


def put_section(db: Session, user_id: str, section: str, value: Any, *, at: Optional[datetime] = None) -> SyncKV:
    row = _row(db, user_id, section)
    stamp = at or utc_now()
    if row is None:
        row = SyncKV(user_id=user_id, section=section, data=value, updated_at=stamp)
        db.add(row)
    else:
        row.data = value
        row.updated_at = stamp
    return row


def delete_all(db: Session, user_id: str) -> int:
    result = db.execute(delete(SyncKV).where(SyncKV.user_id == user_id))
    return result.rowcount or 0


def deep_merge(base: Any, incoming: Any) -> Any:
    """Merge `incoming` into `base` key by key; incoming wins on leaves."""
    if not isinstance(base, dict) or not isinstance(incoming, dict):
        return incoming
    merged = dict(base)
    for key, value in incoming.items():
        if key in merged:
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def append_log(existing: Optional[list], incoming: list) -> list:
    """Concatenate log entries, skipping entries whose id is already present."""
    merged = list(existing or [])
    seen = {e.get("id") for e in merged if isinstance(e, dict) and e.get("id") is not None}
    for entry in incoming:
        entry_id = entry.get("id") if isinstance(entry, dict) else None
        if entry_id is not None:
            if entry_id in seen:
                continue
            seen.add(entry_id)
        merged.append(entry)
    return merged
