"""Bearer-token session lookup.

Sessions are issued by the auth service; the sync engine only needs to turn a
token into a user id. `DbSessionLookup` reads the shared `user_sessions`
table, which stores sha256 hashes of tokens, never raw tokens.
"""

import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.time import ensure_utc, utc_now
from ..models import UserSession


@dataclass(frozen=True)
class SessionInfo:
    user_id: str
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return ensure_utc(self.expires_at) <= (now or utc_now())


class SessionLookup(Protocol):
    def get_session(self, token: str) -> Optional[SessionInfo]: ...


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class DbSessionLookup:
    def __init__(self, db: Session):
        self.db = db

    def get_session(self, token: str) -> Optional[SessionInfo]:
        row = self.db.execute(
            select(UserSession).where(UserSession.token_hash == hash_token(token))
        ).scalar_one_or_none()
        if row is None:
            return None
        return SessionInfo(user_id=row.user_id, expires_at=row.expires_at)
