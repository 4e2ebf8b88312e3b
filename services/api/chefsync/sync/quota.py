"""Plan limits for capacity-gated collections."""

from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ..errors import QuotaExceeded
from ..settings import settings
from .collections import get_collection, count_items


@dataclass(frozen=True)
class LimitCheck:
    limit: Optional[int]
    remaining: Optional[int]
    count: int

    def details(self, count: Optional[int] = None) -> dict:
        return {
            "limit": self.limit if self.limit is not None else "unlimited",
            "count": self.count if count is None else count,
            "remaining": self.remaining if self.remaining is not None else "unlimited",
        }


class QuotaChecker(Protocol):
    def check_limit(self, user_id: str, section: str) -> LimitCheck: ...


class PlanQuotaChecker:
    """Limits from settings, counts from the user's stored rows."""

    def __init__(self, db: Session, limits: Optional[dict[str, Optional[int]]] = None):
        self.db = db
        if limits is None:
            limits = {
                "inventory": settings.inventory_item_limit,
                "cookware": settings.cookware_item_limit,
            }
        self.limits = limits

    def check_limit(self, user_id: str, section: str) -> LimitCheck:
        count = count_items(self.db, get_collection(section), user_id)
        limit = self.limits.get(section)
        if limit is None:
            return LimitCheck(limit=None, remaining=None, count=count)
        return LimitCheck(limit=limit, remaining=max(limit - count, 0), count=count)


def _label(section: str) -> str:
    return "pantry" if section == "inventory" else section


def ensure_capacity(checker: QuotaChecker, user_id: str, section: str, code: str) -> LimitCheck:
    """Raise QuotaExceeded when no room is left for one more item."""
    check = checker.check_limit(user_id, section)
    if check.remaining is not None and check.remaining <= 0:
        raise QuotaExceeded(
            f"You have reached your {_label(section)} item limit",
            code=code,
            details=check.details(),
        )
    return check


def ensure_fits(checker: QuotaChecker, user_id: str, section: str, code: str, incoming: int) -> LimitCheck:
    """Raise QuotaExceeded when a whole-section replacement exceeds the limit."""
    check = checker.check_limit(user_id, section)
    if check.limit is not None and incoming > check.limit:
        raise QuotaExceeded(
            f"Too many {_label(section)} items for your plan",
            code=code,
            details={"limit": check.limit, "count": incoming, "remaining": check.remaining},
        )
    return check
