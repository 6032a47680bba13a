"""Per-user rate limiting condition."""

import inspect
from typing import Optional

from ..config import get_config
from ..contracts.errors import ContractConfigurationError, ContractError, ErrorType
from ..contracts.registry import Predicate
from ..utils.rate_limiter import (
    clear_rate_limit,
    get_rate_limit_key,
    get_rate_limit_status,
    get_rate_store,
)


async def _call(value):
    if inspect.isawaitable(value):
        return await value
    return value


def rate_limit(key: str, limit: int, window_ms: Optional[int] = None, store=None) -> Predicate:
    """
    Allow at most `limit` calls per user per window for operation `key`.

    The counter store owns the window; this condition reads the count once
    and increments once per passing call. window_ms defaults to
    ContractConfig.default_rate_limit_window_ms (60s).

    Raises:
        ContractConfigurationError: If window_ms is given and not positive
    """
    if window_ms is not None and window_ms <= 0:
        raise ContractConfigurationError(
            f"rate_limit({key!r}) window_ms must be positive, got {window_ms}"
        )

    async def check_rate_limit(input, context):
        user = getattr(context, 'user', None)
        if user is None or not user.id:
            raise ContractError("User ID required for rate limiting", ErrorType.RATE_LIMIT_ERROR)

        window = window_ms if window_ms is not None else get_config().default_rate_limit_window_ms
        counters = store or get_rate_store()
        counter_key = get_rate_limit_key(user.id, key)

        current = await _call(counters.get_count(counter_key))
        if current >= limit:
            raise ContractError(
                f"Rate limit exceeded for {key}: {current}/{limit} per {window / 1000:g} seconds",
                ErrorType.RATE_LIMIT_ERROR,
                details={
                    "operation": key,
                    "maxPerWindow": limit,
                    "current": current,
                    "windowMs": window,
                },
            )

        await _call(counters.increment(counter_key, window))
        return True

    return Predicate(check_rate_limit, name=f"rate_limit({key})")


__all__ = ['rate_limit', 'clear_rate_limit', 'get_rate_limit_status']
