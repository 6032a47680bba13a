"""
Server-action style wrapper.

as_action(op) returns an async callable that never raises for contract
failures:
    {"success": True, "data": ...}                     on success
    {"success": False, "status": 403, "error": {...}}  on a violation
    {"success": False, ..., "redirect": "/login"}      when a redirect applies
    {"success": False, "error": "An unexpected error occurred."}
"""

import functools
import logging
from typing import Any, Awaitable, Callable, Dict

from ..contracts.errors import ContractViolationError

logger = logging.getLogger('contractguard.integrations')


def as_action(op: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Dict[str, Any]]]:
    @functools.wraps(op, assigned=('__module__', '__name__', '__qualname__', '__doc__'), updated=())
    async def action(input: Any = None, context: Any = None) -> Dict[str, Any]:
        try:
            result = await op(input, context)
            return {"success": True, "data": result}
        except ContractViolationError as e:
            mapped = e.get_appropriate_response()
            response = {
                "success": False,
                "status": mapped.status,
                "error": mapped.body,
            }
            if mapped.redirect:
                response["redirect"] = mapped.redirect
            return response
        except Exception:
            logger.exception(f"Unexpected error in action {getattr(op, '__name__', op)}")
            return {"success": False, "error": "An unexpected error occurred."}

    return action
