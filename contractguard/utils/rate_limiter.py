"""
Rate counter storage for the rate_limit condition.

Uses Redis in production, memory storage for development (via the limits
library's storage backends, selected by RATE_LIMIT_STORAGE_URI/REDIS_URL).

Key decisions:
- Keys are per user and per operation: "rate_limit:<user_id>:<operation>"
- Fixed window: the first increment starts the window, the count drops to
  zero once the window has elapsed (storage expiry)
"""

import math
import time
import logging
from datetime import datetime, timezone
from typing import Optional

from limits.storage import MemoryStorage, storage_from_string

from ..config import get_config
from ..constants import RATE_LIMIT_KEY_PREFIX

logger = logging.getLogger('contractguard.rate_limit')


def get_rate_limit_key(user_id: str, operation: str) -> str:
    return f"{RATE_LIMIT_KEY_PREFIX}:{user_id}:{operation}"


class RateCounterStore:
    """
    Windowed counters on top of a limits storage backend.

    get_count/increment are the interface the rate_limit condition relies
    on; reset_at/clear back the status and reset helpers.
    """

    def __init__(self, storage_uri: str = "memory://"):
        self.storage_uri = storage_uri
        self.storage = storage_from_string(storage_uri)
        if isinstance(self.storage, MemoryStorage):
            logger.warning("Rate limiter using in-memory storage (dev only)")
        else:
            logger.info(f"Rate limiter using storage: {storage_uri.split('@')[-1]}")

    def _expiry_seconds(self, window_ms: int):
        seconds = window_ms / 1000
        if isinstance(self.storage, MemoryStorage):
            return seconds
        # Redis-style backends only accept whole seconds
        return max(1, math.ceil(seconds))

    def get_count(self, key: str) -> int:
        return int(self.storage.get(key) or 0)

    def increment(self, key: str, window_ms: int) -> int:
        return self.storage.incr(key, self._expiry_seconds(window_ms))

    def reset_at(self, key: str) -> Optional[float]:
        """Epoch seconds at which the current window ends, None if no window is open."""
        if self.get_count(key) == 0:
            return None
        return self.storage.get_expiry(key)

    def clear(self, key: str) -> None:
        self.storage.clear(key)


def get_rate_store() -> RateCounterStore:
    """
    The configured rate store, created from rate_limit_storage_uri on first use.
    """
    config = get_config()
    if config.rate_store is None:
        config.rate_store = RateCounterStore(config.rate_limit_storage_uri)
    return config.rate_store


def get_rate_limit_status(user_id: str, operation: str, limit: int, store=None) -> Optional[dict]:
    """
    Current window for (user_id, operation).

    Returns:
        {count, remaining, reset_at, time_until_reset_ms} or None when no
        window is open
    """
    store = store or get_rate_store()
    key = get_rate_limit_key(user_id, operation)
    reset_at = store.reset_at(key)
    if reset_at is None:
        return None

    count = store.get_count(key)
    return {
        "count": count,
        "remaining": max(0, limit - count),
        "reset_at": datetime.fromtimestamp(reset_at, tz=timezone.utc),
        "time_until_reset_ms": max(0, int((reset_at - time.time()) * 1000)),
    }


def clear_rate_limit(user_id: str, operation: str, store=None) -> None:
    """Drop the counter for (user_id, operation)."""
    store = store or get_rate_store()
    store.clear(get_rate_limit_key(user_id, operation))
    logger.info(f"Rate limit cleared for {user_id}:{operation}")
