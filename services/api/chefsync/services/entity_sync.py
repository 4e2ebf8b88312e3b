"""Per-entity write and read handlers.

create/update are upserts; update of an existing row goes through the
last-writer-wins check; delete is idempotent. Every write (including a stale
rejection) bumps the section's ledger entry. The caller commits.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.time import to_iso, utc_now
from ..errors import ValidationFailed, format_validation_errors
from ..sync import ledger
from ..sync.collections import (
    SyncedCollection,
    validate_item,
    get_item,
    insert_item,
    apply_item,
    delete_item,
    list_page,
    to_wire,
)
from ..sync.conflict import effective_incoming_time, resolve_write, next_stamp
from ..sync.cursor import decode_cursor
from ..sync.quota import QuotaChecker, ensure_capacity
from ..settings import settings

logger = logging.getLogger("chefsync.sync")


def _validate(coll: SyncedCollection, data: dict[str, Any]):
    try:
        return validate_item(coll, data)
    except ValidationError as e:
        logger.warning(f"Invalid {coll.section} item: {e.error_count()} error(s)")
        raise ValidationFailed(
            f"Invalid {coll.section} item",
            details={"section": coll.section, "errors": format_validation_errors(e.errors())},
        )


def _result(operation: str, item_id: str, synced_at: datetime, **extra) -> dict[str, Any]:
    out = {"syncedAt": to_iso(synced_at), "operation": operation, "itemId": item_id}
    out.update({k: v for k, v in extra.items() if v is not None})
    return out


def _insert_new(db: Session, coll: SyncedCollection, user_id: str, item, quota: QuotaChecker, now: datetime):
    if coll.quota_code:
        ensure_capacity(quota, user_id, coll.section, coll.quota_code)
    row = insert_item(db, coll, user_id, item, now)
    db.flush()
    return row


def create_entity(
    db: Session,
    coll: SyncedCollection,
    user_id: str,
    data: dict[str, Any],
    quota: QuotaChecker,
) -> dict[str, Any]:
    """Upsert without a staleness check."""
    item = _validate(coll, data)
    now = utc_now()
    row = get_item(db, coll, user_id, item.item_id)
    if row is None:
        row = _insert_new(db, coll, user_id, item, quota, now)
        logger.info(f"Created {coll.section} item {item.item_id} for user {user_id}")
    else:
        apply_item(coll, row, item, next_stamp(row.updated_at, now))
        logger.info(f"Overwrote {coll.section} item {item.item_id} for user {user_id}")
    ledger.bump(db, user_id, coll.section, at=row.updated_at)
    return _result("create", item.item_id, row.updated_at)


def update_entity(
    db: Session,
    coll: SyncedCollection,
    user_id: str,
    data: dict[str, Any],
    quota: QuotaChecker,
    client_timestamp: Optional[datetime] = None,
) -> dict[str, Any]:
    """Update with last-writer-wins; a missing row is created."""
    item = _validate(coll, data)
    now = utc_now()
    row = get_item(db, coll, user_id, item.item_id)
    if row is None:
        row = _insert_new(db, coll, user_id, item, quota, now)
        logger.info(f"Update created {coll.section} item {item.item_id} for user {user_id}")
        ledger.bump(db, user_id, coll.section, at=row.updated_at)
        return _result("update", item.item_id, row.updated_at)

    incoming = effective_incoming_time(item.updated_at, client_timestamp, now)
    resolution = resolve_write(row.updated_at, incoming)
    if not resolution.accepted:
        logger.warning(
            f"Stale {coll.section} update for item {item.item_id} (user {user_id}): "
            f"incoming {to_iso(incoming)} <= stored {to_iso(row.updated_at)}"
        )
        ledger.bump(db, user_id, coll.section, at=now)
        return _result(
            "skipped",
            item.item_id,
            now,
            reason=resolution.reason,
            serverVersion=to_wire(coll, row),
        )

    apply_item(coll, row, item, next_stamp(row.updated_at, now))
    ledger.bump(db, user_id, coll.section, at=row.updated_at)
    logger.info(f"Updated {coll.section} item {item.item_id} for user {user_id}")
    return _result("update", item.item_id, row.updated_at)


def delete_entity(db: Session, coll: SyncedCollection, user_id: str, item_id: Any) -> dict[str, Any]:
    item_id = str(item_id)
    if not item_id.strip():
        raise ValidationFailed("Item id is required", details={"section": coll.section})
    now = utc_now()
    removed = delete_item(db, coll, user_id, item_id)
    ledger.bump(db, user_id, coll.section, at=now)
    if removed:
        logger.info(f"Deleted {coll.section} item {item_id} for user {user_id}")
    return _result("delete", item_id, now)


def list_entities(
    db: Session,
    coll: SyncedCollection,
    user_id: str,
    *,
    cursor: Optional[str] = None,
    limit: Optional[int] = None,
) -> dict[str, Any]:
    if limit is None:
        limit = settings.sync_page_default
    limit = max(1, min(limit, settings.sync_page_max))
    decoded = decode_cursor(cursor) if cursor else None
    rows, next_cursor = list_page(db, coll, user_id, cursor=decoded, limit=limit)
    page: dict[str, Any] = {"items": [to_wire(coll, r) for r in rows]}
    if next_cursor:
        page["nextCursor"] = next_cursor
    return page
