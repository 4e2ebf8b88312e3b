"""FastAPI dependencies for ChefSync API.

Provides:
- Database session dependency
- Current user resolution (Bearer token -> session -> user id)
- Swappable collaborators: session lookup, quota checker, failure log
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .db import get_db
from .errors import Unauthorized
from .infra.failure_log import FailureLog, get_failure_log as _failure_log
from .services.sessions import DbSessionLookup, SessionLookup
from .sync.quota import PlanQuotaChecker, QuotaChecker


def get_session_lookup(db: Session = Depends(get_db)) -> SessionLookup:
    return DbSessionLookup(db)


def get_quota_checker(db: Session = Depends(get_db)) -> QuotaChecker:
    return PlanQuotaChecker(db)


def get_failure_log() -> FailureLog:
    return _failure_log()


def get_current_user_id(
    authorization: Optional[str] = Header(None),
    sessions: SessionLookup = Depends(get_session_lookup),
) -> str:
    """Resolve the caller's user id from `Authorization: Bearer <token>`.

    Raises:
        Unauthorized (UNAUTHORIZED) if the header is missing or unknown
        Unauthorized (SESSION_EXPIRED) if the session has expired
    """
    if not authorization:
        raise Unauthorized("Authentication required")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise Unauthorized("Authentication required")

    session = sessions.get_session(token)
    if session is None:
        raise Unauthorized("Invalid session")
    if session.is_expired():
        raise Unauthorized("Session expired", code="SESSION_EXPIRED")
    return session.user_id
