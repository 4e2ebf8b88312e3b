"""Rolling log of failed sync writes, read back by GET /sync/status.

Failures are kept per user for a bounded window; recording one never fails
the caller.
"""

import json
import logging
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Optional

from redis.exceptions import RedisError

from ..core.time import utc_now, to_iso, parse_iso
from ..settings import settings
from .redis_client import get_sync_redis

logger = logging.getLogger("chefsync.failures")


@dataclass
class SyncFailure:
    data_type: str
    operation: str
    error_message: str
    timestamp: str

    def to_wire(self) -> dict:
        return {
            "dataType": self.data_type,
            "operation": self.operation,
            "errorMessage": self.error_message,
            "timestamp": self.timestamp,
        }


class FailureLog:
    """Interface: record a failure, list a user's failures inside the window."""

    def __init__(self, window_hours: Optional[int] = None, max_entries: Optional[int] = None):
        self.window = timedelta(hours=window_hours or settings.failure_log_window_hours)
        self.max_entries = max_entries or settings.failure_log_max_entries

    def record(self, user_id: str, data_type: str, operation: str, message: str) -> None:
        raise NotImplementedError

    def recent(self, user_id: str, now: Optional[datetime] = None) -> list[SyncFailure]:
        """Failures inside the window, newest first."""
        raise NotImplementedError

    def _fresh(self, entries: list[SyncFailure], now: Optional[datetime]) -> list[SyncFailure]:
        cutoff = (now or utc_now()) - self.window
        out = []
        for e in entries:
            ts = parse_iso(e.timestamp)
            if ts is not None and ts >= cutoff:
                out.append(e)
        return out


class InMemoryFailureLog(FailureLog):
    def __init__(self, window_hours: Optional[int] = None, max_entries: Optional[int] = None):
        super().__init__(window_hours, max_entries)
        self._lock = threading.Lock()
        self._entries: dict[str, deque] = defaultdict(lambda: deque(maxlen=self.max_entries))

    def record(self, user_id: str, data_type: str, operation: str, message: str) -> None:
        entry = SyncFailure(data_type, operation, message, to_iso(utc_now()))
        with self._lock:
            self._entries[user_id].appendleft(entry)

    def recent(self, user_id: str, now: Optional[datetime] = None) -> list[SyncFailure]:
        with self._lock:
            entries = list(self._entries.get(user_id, ()))
        return self._fresh(entries, now)


class RedisFailureLog(FailureLog):
    """One Redis list per user: newest at the head, trimmed, expiring with the window."""

    def _key(self, user_id: str) -> str:
        return f"chefsync:sync_failures:{user_id}"

    def record(self, user_id: str, data_type: str, operation: str, message: str) -> None:
        entry = SyncFailure(data_type, operation, message, to_iso(utc_now()))
        key = self._key(user_id)
        try:
            r = get_sync_redis()
            pipe = r.pipeline()
            pipe.lpush(key, json.dumps(asdict(entry)))
            pipe.ltrim(key, 0, self.max_entries - 1)
            pipe.expire(key, int(self.window.total_seconds()))
            pipe.execute()
        except RedisError as e:
            logger.warning(f"Could not record sync failure for user {user_id}: {e}")

    def recent(self, user_id: str, now: Optional[datetime] = None) -> list[SyncFailure]:
        try:
            raw = get_sync_redis().lrange(self._key(user_id), 0, self.max_entries - 1)
        except RedisError as e:
            logger.warning(f"Could not read sync failures for user {user_id}: {e}")
            return []
        entries = []
        for item in raw:
            try:
                entries.append(SyncFailure(**json.loads(item)))
            except (ValueError, TypeError):
                logger.warning(f"Skipping malformed failure entry for user {user_id}")
        return self._fresh(entries, now)


_memory_log: Optional[InMemoryFailureLog] = None


def get_failure_log() -> FailureLog:
    global _memory_log
    if settings.failure_log_backend == "memory":
        if _memory_log is None:
            _memory_log = InMemoryFailureLog()
        return _memory_log
    return RedisFailureLog()
