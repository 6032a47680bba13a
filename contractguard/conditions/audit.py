"""
Audit logging conditions.

audit_log() goes in ensures and records a successful call; audit_log_failure()
records a failed one. Both always pass: the record is handed to the sink,
and a sink failure is logged on contractguard.audit and nothing else.

Record shape:
    {action, userId, resourceId, timestamp, input?, output?, success, metadata?}

Sensitive fields are removed at every depth before the record is built.
"""

import asyncio
import dataclasses
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Mapping, Optional, Set

from pydantic import BaseModel

from ..config import get_config
from ..constants import (
    ANONYMOUS_USER_ID,
    FAILURE_ACTION_SUFFIX,
    RESOURCE_ID_FALLBACK,
    RESOURCE_ID_FIELDS,
)
from ..contracts.registry import OutputPredicate, Predicate
from ..utils.audit_sink import get_audit_sink
from ..utils.collaborators import call_collaborator
from ..utils.fields import as_mapping

logger = logging.getLogger('contractguard.audit')

# Deliveries in flight; held so shielded tasks are not garbage collected
_pending: Set[asyncio.Future] = set()


def sanitize_for_audit(value: Any, sensitive_fields: Optional[Iterable[str]] = None) -> Any:
    """
    Copy of value with sensitive keys removed at every depth.

    Descends into mappings, lists, tuples, pydantic models and dataclasses.
    Everything else is returned as is.
    """
    fields = set(sensitive_fields if sensitive_fields is not None else get_config().sensitive_fields)
    return _sanitize(value, fields)


def _sanitize(value: Any, fields: Set[str]) -> Any:
    if isinstance(value, BaseModel):
        value = value.model_dump()
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = dataclasses.asdict(value)

    if isinstance(value, Mapping):
        return {k: _sanitize(v, fields) for k, v in value.items() if k not in fields}
    if isinstance(value, list):
        return [_sanitize(v, fields) for v in value]
    if isinstance(value, tuple):
        return tuple(_sanitize(v, fields) for v in value)
    return value


def extract_resource_id(value: Any) -> str:
    """
    First usable id in value: id, userId, resourceId, entityId, documentId.

    Usable means a non-empty string or a number. Falls back to "N/A".
    """
    data = as_mapping(value)
    if data is None:
        return RESOURCE_ID_FALLBACK

    for name in RESOURCE_ID_FIELDS:
        candidate = data.get(name)
        if isinstance(candidate, bool):
            continue
        if isinstance(candidate, str) and candidate:
            return candidate
        if isinstance(candidate, (int, float)):
            return str(candidate)
    return RESOURCE_ID_FALLBACK


def _user_id(context) -> str:
    user = getattr(context, 'user', None)
    if user is None or not user.id:
        return ANONYMOUS_USER_ID
    return str(user.id)


async def _deliver(sink, record: Dict[str, Any]) -> None:
    try:
        await call_collaborator(sink.submit, record)
    except Exception as e:
        logger.error(
            f"Failed to submit audit record for {record.get('action')}: {e}",
            extra={
                "event": "audit_submit_failed",
                "action": record.get("action"),
                "error_type": type(e).__name__,
            },
        )


async def submit_audit_record(record: Dict[str, Any], sink=None) -> None:
    """
    Hand record to the sink. Never raises for sink failures.

    Delivery runs as its own task and is shielded, so a caller that is
    cancelled mid-await does not stop it.
    """
    config = get_config()
    if not config.audit_enabled:
        logger.debug(f"Audit disabled, dropping record for {record.get('action')}")
        return

    task = asyncio.ensure_future(_deliver(sink or get_audit_sink(), record))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
    await asyncio.shield(task)


def audit_log(
    action: str,
    include_input: bool = True,
    include_output: bool = True,
    metadata: Optional[Dict[str, Any]] = None,
    sink=None,
) -> OutputPredicate:
    """Record a successful call. Use in ensures; always passes."""
    async def record_success(output, input, context):
        record = {
            "action": action,
            "userId": _user_id(context),
            "resourceId": extract_resource_id(input),
            "timestamp": datetime.now(timezone.utc),
            "success": True,
        }
        if include_input:
            record["input"] = sanitize_for_audit(input)
        if include_output:
            record["output"] = sanitize_for_audit(output)
        if metadata:
            record["metadata"] = dict(metadata)

        await submit_audit_record(record, sink)
        return True

    return OutputPredicate(record_success, name=f"audit_log({action})")


def audit_log_failure(
    action: str,
    error: BaseException,
    include_input: bool = True,
    metadata: Optional[Dict[str, Any]] = None,
    sink=None,
) -> Predicate:
    """
    Record a failed call over (input, context); always passes.

    Usage:
        except ContractViolationError as e:
            await audit_log_failure("update_document", e).invoke(payload, ctx)
    """
    async def record_failure(input, context):
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        record = {
            "action": f"{action}{FAILURE_ACTION_SUFFIX}",
            "userId": _user_id(context),
            "resourceId": extract_resource_id(input),
            "timestamp": datetime.now(timezone.utc),
            "output": {"error": str(error), "errorType": type(error).__name__},
            "success": False,
            "metadata": {**(metadata or {}), "errorStack": stack},
        }
        if include_input:
            record["input"] = sanitize_for_audit(input)

        await submit_audit_record(record, sink)
        return True

    return Predicate(record_failure, name=f"audit_log_failure({action})")
