import pytest
import uuid
import json
from unittest.mock import patch, AsyncMock
from fakeredis import FakeAsyncRedis
from chefsync.infra.idempotency import idempotency_precheck, idempotency_store_result, idempotency_clear_key
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

# --- Mocking Redis ---

@pytest.fixture
def fake_redis():
    return FakeAsyncRedis(decode_responses=True)

@pytest.fixture(autouse=True)
def patch_redis_client(fake_redis):
    # Patch the get_redis used inside idempotency module
    with patch("chefsync.infra.idempotency.get_redis", return_value=fake_redis):
        yield

def _request(idem_key=None, body=b'{"mode": "merge"}'):
    req = AsyncMock(spec=Request)
    req.headers = {"Idempotency-Key": idem_key} if idem_key else {}
    req.method = "POST"
    req.url.path = "/api/sync/import"
    req.body = AsyncMock(return_value=body)
    return req

# --- Unit Tests for Logic ---

@pytest.mark.asyncio
async def test_precheck_without_header_proceeds():
    assert await idempotency_precheck(_request(), user_id="u1", route_key="sync_import") is None

@pytest.mark.asyncio
async def test_idempotency_flow(fake_redis):
    idem_key = str(uuid.uuid4())
    req = _request(idem_key)

    # 1. First call -> returns key to proceed
    res = await idempotency_precheck(req, user_id="u1", route_key="sync_import")
    assert isinstance(res, tuple)
    rkey, rhash = res
    assert rkey == f"chefsync:idemp:u1:sync_import:{idem_key}"

    val = await fake_redis.get(rkey)
    assert json.loads(val)["state"] == "processing"

    # 2. Concurrent call -> 409
    with pytest.raises(HTTPException) as exc:
        await idempotency_precheck(req, user_id="u1", route_key="sync_import")
    assert exc.value.status_code == 409

    # 3. Store result
    await idempotency_store_result(rkey, rhash, status=200, body={"mode": "merge"})
    data = json.loads(await fake_redis.get(rkey))
    assert data["state"] == "done"
    assert data["status"] == 200

    # 4. Replay
    res2 = await idempotency_precheck(req, user_id="u1", route_key="sync_import")
    assert isinstance(res2, JSONResponse)
    assert json.loads(res2.body) == {"mode": "merge"}

@pytest.mark.asyncio
async def test_keys_are_scoped_per_user():
    idem_key = str(uuid.uuid4())
    first = await idempotency_precheck(_request(idem_key), user_id="u1", route_key="sync_import")
    second = await idempotency_precheck(_request(idem_key), user_id="u2", route_key="sync_import")
    assert isinstance(first, tuple) and isinstance(second, tuple)
    assert first[0] != second[0]

@pytest.mark.asyncio
async def test_payload_mismatch_is_409():
    idem_key = str(uuid.uuid4())
    rkey, rhash = await idempotency_precheck(_request(idem_key), user_id="u1", route_key="sync_import")
    await idempotency_store_result(rkey, rhash, status=200, body={})

    with pytest.raises(HTTPException) as exc:
        await idempotency_precheck(_request(idem_key, body=b'{"mode": "replace"}'), user_id="u1", route_key="sync_import")
    assert exc.value.status_code == 409

@pytest.mark.asyncio
async def test_clear_key_releases_lock(fake_redis):
    idem_key = str(uuid.uuid4())
    rkey, _ = await idempotency_precheck(_request(idem_key), user_id="u1", route_key="sync_import")
    await idempotency_clear_key(rkey)
    assert await fake_redis.get(rkey) is None
    assert isinstance(await idempotency_precheck(_request(idem_key), user_id="u1", route_key="sync_import"), tuple)
