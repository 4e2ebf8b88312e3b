"""Sync endpoints.

Account-wide routes (/sync, /sync/status, /sync/export, /sync/import) are
declared before the per-entity /sync/{entity} routes so the fixed paths win.
"""

import logging
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import schemas
from ..core.time import utc_now
from ..deps import get_db, get_current_user_id, get_quota_checker, get_failure_log
from ..errors import AppError, SyncWriteFailed
from ..infra.failure_log import FailureLog
from ..infra.idempotency import idempotency_precheck, idempotency_store_result, idempotency_clear_key
from ..services import account_sync, backup, entity_sync
from ..settings import settings
from ..sync.collections import get_collection
from ..sync.quota import QuotaChecker

logger = logging.getLogger("chefsync.sync")

router = APIRouter()
limiter = Limiter(key_func=get_remote_address)


def _describe(e: Exception) -> str:
    lines = str(e).splitlines()
    return f"{e.__class__.__name__}: {lines[0]}" if lines else e.__class__.__name__


def _run_write(
    db: Session,
    failures: FailureLog,
    user_id: str,
    data_type: str,
    operation: str,
    fn: Callable[[], Any],
) -> Any:
    """Run `fn` in the request transaction and commit.

    Database errors roll back, land in the failure log and surface as
    SYNC_WRITE_FAILED.
    """
    try:
        result = fn()
        db.commit()
        return result
    except AppError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        failures.record(user_id, data_type, operation, _describe(e))
        logger.exception(f"Sync write failed: {data_type}/{operation} for user {user_id}")
        raise SyncWriteFailed(
            "Sync write failed, please retry",
            details={"dataType": data_type, "operation": operation},
        )


# --- Account-wide ---

@router.get("/sync")
def get_sync(
    last_synced_at: Optional[str] = Query(None, alias="lastSyncedAt"),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Full or delta account snapshot."""
    return account_sync.get_account_data(db, user_id, last_synced_at)


@router.post("/sync", response_model=schemas.AccountSyncResult, response_model_exclude_none=True)
def post_sync(
    payload: schemas.AccountSyncRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    quota: QuotaChecker = Depends(get_quota_checker),
    failures: FailureLog = Depends(get_failure_log),
):
    """Replace every section present in the payload."""
    return _run_write(
        db, failures, user_id, "account", "sync",
        lambda: account_sync.sync_account(db, user_id, payload.data, quota),
    )


@router.get("/sync/status", response_model=schemas.SyncStatusOut)
def get_sync_status(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    failures: FailureLog = Depends(get_failure_log),
):
    return account_sync.get_status(db, user_id, failures)


@router.post("/sync/export")
def export_sync(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Download the whole account as a versioned backup document."""
    document = backup.export_backup(db, user_id)
    headers = {
        "Content-Disposition": f'attachment; filename="chefsync-backup-{utc_now().date().isoformat()}.json"'
    }
    return JSONResponse(content=document, headers=headers)


@router.post("/sync/import", response_model=schemas.ImportResult, response_model_exclude_none=True)
@limiter.limit(settings.import_rate_limit)
async def import_sync(
    request: Request,  # Required for rate limiter
    payload: schemas.ImportRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    quota: QuotaChecker = Depends(get_quota_checker),
    failures: FailureLog = Depends(get_failure_log),
):
    """Restore a backup in merge or replace mode, all or nothing."""
    pre = await idempotency_precheck(request, user_id=user_id, route_key="sync_import")
    if isinstance(pre, JSONResponse):
        return pre

    try:
        result = _run_write(
            db, failures, user_id, "import", payload.mode,
            lambda: backup.import_backup(db, user_id, payload.backup, payload.mode, quota),
        )
    except Exception:
        if pre is not None:
            await idempotency_clear_key(pre[0])
        raise

    if pre is not None:
        redis_key, req_hash = pre
        await idempotency_store_result(redis_key, req_hash, status=200, body=result)
    return result


# --- Per entity ---

@router.get("/sync/{entity}", response_model=schemas.EntityPage)
def list_entity(
    entity: str,
    cursor: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """One page of a collection, ordered by (updatedAt, id)."""
    coll = get_collection(entity)
    return entity_sync.list_entities(db, coll, user_id, cursor=cursor, limit=limit)


@router.post("/sync/{entity}")
def post_entity(
    entity: str,
    payload: schemas.EntitySyncRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    quota: QuotaChecker = Depends(get_quota_checker),
    failures: FailureLog = Depends(get_failure_log),
):
    coll = get_collection(entity)
    if payload.operation == "create":
        fn = lambda: entity_sync.create_entity(db, coll, user_id, payload.data, quota)
    elif payload.operation == "update":
        fn = lambda: entity_sync.update_entity(db, coll, user_id, payload.data, quota, payload.clientTimestamp)
    else:
        fn = lambda: entity_sync.delete_entity(db, coll, user_id, payload.data.get("id", ""))
    return _run_write(db, failures, user_id, entity, payload.operation, fn)


@router.put("/sync/{entity}")
def put_entity(
    entity: str,
    payload: schemas.EntityUpdateRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    quota: QuotaChecker = Depends(get_quota_checker),
    failures: FailureLog = Depends(get_failure_log),
):
    coll = get_collection(entity)
    return _run_write(
        db, failures, user_id, entity, "update",
        lambda: entity_sync.update_entity(db, coll, user_id, payload.data, quota, payload.clientTimestamp),
    )


@router.delete("/sync/{entity}")
def delete_entity(
    entity: str,
    payload: schemas.EntityDeleteRequest,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    failures: FailureLog = Depends(get_failure_log),
):
    coll = get_collection(entity)
    return _run_write(
        db, failures, user_id, entity, "delete",
        lambda: entity_sync.delete_entity(db, coll, user_id, payload.data.id),
    )
