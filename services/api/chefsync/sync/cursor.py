"""Pagination cursor codec.

A cursor is base64url(JSON{"updatedAt": ISO-8601, "id": int}) without padding.
It names the last row of the previous page; the next page starts strictly
after (updatedAt, id).
"""

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import datetime

from ..core.time import parse_iso, to_iso
from ..errors import InvalidCursor


@dataclass(frozen=True)
class Cursor:
    updated_at: datetime
    id: int


def encode_cursor(updated_at: datetime, row_id: int) -> str:
    payload = json.dumps({"updatedAt": to_iso(updated_at), "id": int(row_id)}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(token: str) -> Cursor:
    """Decode a cursor token, raising InvalidCursor on any malformation."""
    if not token or not isinstance(token, str):
        raise InvalidCursor()
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError):
        raise InvalidCursor()

    if not isinstance(data, dict):
        raise InvalidCursor()

    updated_at = parse_iso(data.get("updatedAt"))
    row_id = data.get("id")
    # bool is an int subclass; reject it explicitly
    if updated_at is None or not isinstance(row_id, int) or isinstance(row_id, bool):
        raise InvalidCursor()
    return Cursor(updated_at=updated_at, id=row_id)
