"""Per-user section timestamp ledger.

One `user_sync_state` row per user maps each section name to the last time
anything in it changed. Delta sync compares the client's last sync time
against these entries; entries never move backwards.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.time import parse_iso, to_iso, utc_now, ensure_utc
from ..models import SyncState

logger = logging.getLogger("chefsync.ledger")

COLLECTION_SECTIONS = ("inventory", "recipes", "mealPlans", "shoppingList", "cookware", "customLocations")
KV_SECTION_NAMES = ("wasteLog", "consumedLog", "preferences", "analytics", "onboarding", "userProfile")
ALL_SECTIONS = COLLECTION_SECTIONS + KV_SECTION_NAMES


def get_state(db: Session, user_id: str, *, for_update: bool = False) -> Optional[SyncState]:
    stmt = select(SyncState).where(SyncState.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    return db.execute(stmt).scalar_one_or_none()


def _later(a: Optional[datetime], b: datetime) -> datetime:
    if a is None:
        return b
    return max(ensure_utc(a), b)


def _create_state(db: Session, user_id: str) -> SyncState:
    # a concurrent first write may have inserted the row already
    try:
        with db.begin_nested():
            state = SyncState(user_id=user_id, section_updated_at={})
            db.add(state)
    except IntegrityError:
        logger.info(f"Sync state for user {user_id} created concurrently, reloading")
        state = get_state(db, user_id, for_update=True)
    return state


def bump(db: Session, user_id: str, *sections: str, at: Optional[datetime] = None) -> SyncState:
    """Move the given sections' entries forward to `at` (default: now).

    Creates the state row on first use. Caller commits.
    """
    stamp = ensure_utc(at) if at is not None else utc_now()
    state = get_state(db, user_id, for_update=True)
    if state is None:
        state = _create_state(db, user_id)

    ledger = dict(state.section_updated_at or {})
    for section in sections:
        if section not in ALL_SECTIONS:
            raise ValueError(f"unknown section {section!r}")
        current = parse_iso(ledger.get(section))
        ledger[section] = to_iso(_later(current, stamp))

    # reassign so the JSON column is flagged dirty
    state.section_updated_at = ledger
    state.updated_at = _later(state.updated_at, stamp)
    state.last_synced_at = _later(state.last_synced_at, stamp)
    db.flush()
    return state


def section_timestamp(state: Optional[SyncState], section: str) -> Optional[datetime]:
    if state is None:
        return None
    return parse_iso((state.section_updated_at or {}).get(section))


def changed_since(state: SyncState, since: datetime, sections: Iterable[str] = ALL_SECTIONS) -> list[str]:
    """Sections whose entry is strictly newer than `since`."""
    since = ensure_utc(since)
    changed = []
    for section in sections:
        ts = section_timestamp(state, section)
        if ts is not None and ts > since:
            changed.append(section)
    return changed


def is_unchanged(state: SyncState, since: datetime) -> bool:
    return state.updated_at is not None and ensure_utc(state.updated_at) <= ensure_utc(since)
