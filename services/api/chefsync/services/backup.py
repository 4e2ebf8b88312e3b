"""Account backup export and restore.

Export writes every collection and KV section into one versioned document.
Import validates the whole document before writing anything, then applies it
in `replace` or `merge` mode inside the caller's transaction.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from ..core.time import to_iso, utc_now
from ..errors import ValidationFailed, format_validation_errors
from ..settings import settings
from ..sync import kv, ledger
from ..sync.collections import (
    COLLECTIONS,
    SyncedCollection,
    apply_item,
    count_items,
    dedupe_last_wins,
    get_item,
    insert_item,
    list_all,
    replace_all,
    to_wire,
    validate_many,
)
from ..sync.conflict import next_stamp
from ..sync.quota import QuotaChecker

logger = logging.getLogger("chefsync.backup")

MAX_IMPORT_MESSAGES = 20
ARRAY_SECTIONS = tuple(COLLECTIONS) + kv.LOG_SECTIONS


def export_backup(db: Session, user_id: str) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for section, coll in COLLECTIONS.items():
        data[section] = [to_wire(coll, r) for r in list_all(db, coll, user_id)]
    data.update(kv.get_all(db, user_id))
    logger.info(f"Exported backup for user {user_id}")
    return {"version": settings.backup_version, "exportedAt": to_iso(utc_now()), "data": data}


# --- Validation ---

def _check_version(backup: dict[str, Any]) -> None:
    version = backup.get("version")
    if isinstance(version, bool) or not isinstance(version, int) or version != settings.backup_version:
        raise ValidationFailed(
            f"Unsupported backup version: {version!r}",
            code="UNSUPPORTED_BACKUP_VERSION",
            details={"supported": settings.backup_version, "received": version},
        )


def _check_sizes(data: dict[str, Any]) -> None:
    limit = settings.import_max_array_size
    violations = [
        {"section": section, "count": len(data[section])}
        for section in ARRAY_SECTIONS
        if isinstance(data.get(section), list) and len(data[section]) > limit
    ]
    if violations:
        raise ValidationFailed(
            "Import payload contains arrays that exceed the maximum allowed size",
            code="IMPORT_ARRAY_TOO_LARGE",
            details={"limit": limit, "violations": violations},
        )


def _validate_document(data: dict[str, Any]) -> dict[str, list]:
    """Validate every section; returns the parsed collection items."""
    messages: list[str] = []
    parsed: dict[str, list] = {}

    for section, coll in COLLECTIONS.items():
        raw = data.get(section)
        if raw is None:
            continue
        if not isinstance(raw, list):
            messages.append(f"{section}: expected an array")
            continue
        items, errors = validate_many(coll, raw)
        for err in format_validation_errors(errors, limit=len(errors)):
            index, _, path = err["path"].partition(".")
            where = f"{section}[{index}]: {path}" if path else f"{section}[{index}]"
            messages.append(f"{where}: {err['message']}")
        parsed[section] = items

    for section in kv.LOG_SECTIONS:
        if data.get(section) is not None and not isinstance(data[section], list):
            messages.append(f"{section}: expected an array")
    for section in kv.OBJECT_SECTIONS:
        if data.get(section) is not None and not isinstance(data[section], dict):
            messages.append(f"{section}: expected an object")

    if messages:
        raise ValidationFailed(
            "Backup contains invalid data",
            code="IMPORT_VALIDATION_FAILED",
            details={"errors": messages[:MAX_IMPORT_MESSAGES], "total": len(messages)},
        )
    return parsed


def _label(section: str) -> str:
    return "Inventory" if section == "inventory" else section[0].upper() + section[1:]


# --- Apply ---

def _replace_collection(
    db: Session, coll: SyncedCollection, user_id: str, items: list, quota: QuotaChecker, now: datetime, warnings: list[str]
) -> None:
    if coll.quota_code:
        check = quota.check_limit(user_id, coll.section)
        if check.limit is not None and len(items) > check.limit:
            warnings.append(f"{_label(coll.section)} truncated from {len(items)} to {check.limit} items (plan limit)")
            items = items[: check.limit]
    replace_all(db, coll, user_id, items, now)


def _merge_collection(
    db: Session, coll: SyncedCollection, user_id: str, items: list, quota: QuotaChecker, now: datetime, warnings: list[str]
) -> None:
    existing, new = [], []
    for item in items:
        row = get_item(db, coll, user_id, item.item_id)
        if row is None:
            new.append(item)
        else:
            existing.append((row, item))

    if coll.quota_code and new:
        check = quota.check_limit(user_id, coll.section)
        if check.remaining is not None and len(new) > check.remaining:
            warnings.append(
                f"{_label(coll.section)} truncated: {len(new) - check.remaining} new items skipped (plan limit)"
            )
            new = new[: check.remaining]

    for row, item in existing:
        apply_item(coll, row, item, next_stamp(row.updated_at, now), merge_extras=True)
    for item in new:
        insert_item(db, coll, user_id, item, now)
    db.flush()


def _summary(db: Session, user_id: str) -> dict[str, Any]:
    summary: dict[str, Any] = {section: count_items(db, coll, user_id) for section, coll in COLLECTIONS.items()}
    stored = kv.get_all(db, user_id)
    for section in kv.LOG_SECTIONS:
        summary[section] = len(stored[section]) if isinstance(stored[section], list) else 0
    for section in kv.OBJECT_SECTIONS:
        summary[section] = stored[section] is not None
    return summary


def import_backup(db: Session, user_id: str, backup: dict[str, Any], mode: str, quota: QuotaChecker) -> dict[str, Any]:
    """Validate then apply a backup document. Caller commits or rolls back."""
    _check_version(backup)
    data = backup.get("data")
    if not isinstance(data, dict):
        raise ValidationFailed(
            "Backup data must be an object",
            code="IMPORT_VALIDATION_FAILED",
            details={"errors": ["data: expected an object"], "total": 1},
        )
    _check_sizes(data)
    parsed = _validate_document(data)

    now = utc_now()
    warnings: list[str] = []

    if mode == "replace":
        for section, coll in COLLECTIONS.items():
            items = dedupe_last_wins(parsed.get(section, []))
            _replace_collection(db, coll, user_id, items, quota, now, warnings)
        kv.delete_all(db, user_id)
        for section in kv.KV_SECTIONS:
            if data.get(section) is not None:
                kv.put_section(db, user_id, section, data[section], at=now)
    else:
        for section, coll in COLLECTIONS.items():
            if section in parsed:
                _merge_collection(db, coll, user_id, dedupe_last_wins(parsed[section]), quota, now, warnings)
        for section in kv.LOG_SECTIONS:
            if data.get(section) is not None:
                merged = kv.append_log(kv.get_section(db, user_id, section), data[section])
                kv.put_section(db, user_id, section, merged, at=now)
        for section in kv.OBJECT_SECTIONS:
            if data.get(section) is not None:
                merged = kv.deep_merge(kv.get_section(db, user_id, section), data[section])
                kv.put_section(db, user_id, section, merged, at=now)

    db.flush()
    ledger.bump(db, user_id, *ledger.ALL_SECTIONS, at=now)

    for warning in warnings:
        logger.warning(f"Import for user {user_id}: {warning}")
    logger.info(f"Imported backup for user {user_id} in {mode} mode")

    result: dict[str, Any] = {"mode": mode, "importedAt": to_iso(now), "summary": _summary(db, user_id)}
    if warnings:
        result["warnings"] = warnings
    return result
