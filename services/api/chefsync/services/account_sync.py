"""Whole-account sync: the GET/POST /sync pair and the status document."""

import logging
from typing import Any, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from ..core.time import parse_iso, to_iso, utc_now
from ..errors import ValidationFailed, format_validation_errors
from ..infra.failure_log import FailureLog
from ..schemas import PreferencesIn
from ..sync import kv, ledger
from ..sync.collections import (
    COLLECTIONS,
    count_items,
    dedupe_last_wins,
    list_all,
    replace_all,
    to_wire,
    validate_many,
)
from ..sync.quota import QuotaChecker, ensure_fits

logger = logging.getLogger("chefsync.sync")

RECENT_FAILURES = 10


def _collection_data(db: Session, user_id: str, section: str) -> list[dict[str, Any]]:
    coll = COLLECTIONS[section]
    # deletions must reach other devices, so soft-deleted rows are included
    rows = list_all(db, coll, user_id, include_deleted=True)
    return [to_wire(coll, r) for r in rows]


def _section_data(db: Session, user_id: str, section: str) -> Any:
    if section in COLLECTIONS:
        return _collection_data(db, user_id, section)
    return kv.get_section(db, user_id, section)


def _empty_snapshot() -> dict[str, Any]:
    data: dict[str, Any] = {section: [] for section in COLLECTIONS}
    data.update({section: None for section in kv.KV_SECTIONS})
    return data


def get_account_data(db: Session, user_id: str, last_synced_at: Optional[str] = None) -> dict[str, Any]:
    """Full or delta snapshot of the account, depending on the client's last sync time."""
    server_timestamp = to_iso(utc_now())
    state = ledger.get_state(db, user_id)
    if state is None:
        return {"data": _empty_snapshot(), "lastSyncedAt": None, "serverTimestamp": server_timestamp}

    state_last_synced = to_iso(state.last_synced_at)

    if last_synced_at:
        since = parse_iso(last_synced_at)
        if since is None:
            logger.warning(f"Invalid lastSyncedAt {last_synced_at!r} from user {user_id}, falling back to full sync")
        elif ledger.is_unchanged(state, since):
            return {
                "data": None,
                "unchanged": True,
                "lastSyncedAt": state_last_synced,
                "serverTimestamp": server_timestamp,
            }
        else:
            changed = ledger.changed_since(state, since)
            return {
                "data": {section: _section_data(db, user_id, section) for section in changed},
                "delta": True,
                "lastSyncedAt": state_last_synced,
                "serverTimestamp": server_timestamp,
            }

    data = {section: _section_data(db, user_id, section) for section in ledger.ALL_SECTIONS}
    return {"data": data, "lastSyncedAt": state_last_synced, "serverTimestamp": server_timestamp}


def _prefs_error(e: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid')}" for err in e.errors()
    )


def sync_account(db: Session, user_id: str, data: dict[str, Any], quota: QuotaChecker) -> dict[str, Any]:
    """Replace every section present in `data`. Caller commits.

    All collection sections are validated before anything is written.
    """
    now = utc_now()

    validated: dict[str, list] = {}
    for section, coll in COLLECTIONS.items():
        if section not in data:
            continue
        raw = data[section]
        if raw is None:
            raw = []
        if not isinstance(raw, list):
            raise ValidationFailed(
                f"{section} must be an array",
                code="SYNC_VALIDATION_FAILED",
                details={"section": section, "errors": [{"path": section, "message": "expected an array"}]},
            )
        items, errors = validate_many(coll, raw)
        if errors:
            logger.warning(f"Bulk sync rejected: invalid {section} from user {user_id}")
            raise ValidationFailed(
                f"Invalid {section} data",
                code="SYNC_VALIDATION_FAILED",
                details={"section": section, "errors": format_validation_errors(errors, limit=10, prefix=section)},
            )
        items = dedupe_last_wins(items)
        if coll.quota_code:
            ensure_fits(quota, user_id, section, coll.quota_code, len(items))
        validated[section] = items

    for section in kv.LOG_SECTIONS:
        if section in data and data[section] is not None and not isinstance(data[section], list):
            raise ValidationFailed(
                f"{section} must be an array",
                code="SYNC_VALIDATION_FAILED",
                details={"section": section, "errors": [{"path": section, "message": "expected an array"}]},
            )

    prefs_synced = True
    prefs_error = None
    prefs_value = None
    if data.get("preferences"):
        try:
            prefs = PreferencesIn.model_validate(data["preferences"])
            prefs_value = dict(prefs.model_extra or {})
            prefs_value.update(prefs.model_dump(by_alias=True, exclude_unset=True))
        except ValidationError as e:
            prefs_synced = False
            prefs_error = _prefs_error(e)
            logger.warning(f"Invalid sync preferences from user {user_id}: {prefs_error}")

    touched: list[str] = []
    for section, items in validated.items():
        replace_all(db, COLLECTIONS[section], user_id, items, now)
        touched.append(section)

    for section in kv.KV_SECTIONS:
        if section == "preferences":
            if prefs_value is None:
                continue
            kv.put_section(db, user_id, section, prefs_value, at=now)
        elif section in data:
            kv.put_section(db, user_id, section, data[section], at=now)
        else:
            continue
        touched.append(section)

    ledger.bump(db, user_id, *touched, at=now)
    logger.info(f"Bulk sync for user {user_id}: {', '.join(touched) or 'no sections'}")

    result: dict[str, Any] = {"syncedAt": to_iso(now), "prefsSynced": prefs_synced}
    if prefs_error:
        result["prefsError"] = prefs_error
    return result


def get_status(db: Session, user_id: str, failures: FailureLog) -> dict[str, Any]:
    state = ledger.get_state(db, user_id)
    recent = failures.recent(user_id)
    return {
        "lastSyncedAt": to_iso(state.last_synced_at) if state else None,
        "failedOperations24h": len(recent),
        "recentFailures": [f.to_wire() for f in recent[:RECENT_FAILURES]],
        "isConsistent": state is not None and state.last_synced_at is not None,
        "dataTypes": {section: count_items(db, coll, user_id) for section, coll in COLLECTIONS.items()},
    }
