"""
Calling pluggable collaborators (resource lookups, audit sinks) from conditions.

Collaborators may be sync or async. Async ones are awaited on the loop;
sync ones run in a worker thread so a blocking database call does not
stall other in-flight invocations.
"""

import asyncio
import inspect
from typing import Any, Callable


def _is_async(fn: Callable) -> bool:
    return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(
        getattr(fn, '__call__', None)
    )


async def call_collaborator(fn: Callable, *args) -> Any:
    if _is_async(fn):
        return await fn(*args)

    # to_thread copies the current context, so request-scoped state follows
    result = await asyncio.to_thread(fn, *args)
    if inspect.isawaitable(result):
        result = await result
    return result
