import base64
import json
import pytest
from datetime import datetime, timezone

from chefsync.errors import InvalidCursor
from chefsync.sync.cursor import encode_cursor, decode_cursor


def _raw(payload) -> str:
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode().rstrip("=")


def test_encode_is_unpadded_base64url_json():
    ts = datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc)
    token = encode_cursor(ts, 42)

    assert "=" not in token
    padded = token + "=" * (-len(token) % 4)
    payload = json.loads(base64.urlsafe_b64decode(padded))
    assert payload["id"] == 42
    assert payload["updatedAt"].startswith("2026-03-01T12:30:00")


def test_decode_returns_sort_key():
    ts = datetime(2026, 3, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)
    cursor = decode_cursor(encode_cursor(ts, 7))
    assert cursor.updated_at == ts
    assert cursor.id == 7


def test_decode_accepts_z_suffix():
    cursor = decode_cursor(_raw({"updatedAt": "2026-03-01T00:00:00Z", "id": 1}))
    assert cursor.updated_at == datetime(2026, 3, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize("token", [
    "not base64 at all!!",
    _raw(["a", "list"]),
    _raw({"id": 3}),
    _raw({"updatedAt": "yesterday", "id": 3}),
    _raw({"updatedAt": "2026-03-01T00:00:00Z"}),
    _raw({"updatedAt": "2026-03-01T00:00:00Z", "id": "3"}),
    _raw({"updatedAt": "2026-03-01T00:00:00Z", "id": True}),
    base64.urlsafe_b64encode(b"\xff\xfe").decode(),
])
def test_decode_rejects_malformed(token):
    with pytest.raises(InvalidCursor) as exc:
        decode_cursor(token)
    assert exc.value.status_code == 400
    assert exc.value.code == "INVALID_CURSOR"
