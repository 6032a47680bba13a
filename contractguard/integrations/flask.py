"""
Flask integration.

Usage:
    app = Flask(__name__)
    init_app(app)

    @contract(requires=[auth("user"), validates(DocumentInput)], layer="api")
    async def create_document(input, context=None):
        ...

    app.add_url_rule("/api/documents", view_func=contract_view(create_document), methods=["POST"])

init_app wires:
- FlaskAdapter into the adapter registry
- get_auth_context_from_request as the session provider
- request id / request context middleware
- the error envelope (violations -> mapped status or redirect; other
  exceptions propagate unless catch_all_errors=True)
"""

import dataclasses
import functools
import logging
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from pydantic import BaseModel

from ..adapters.base import adapter_registry
from ..adapters.flask import FlaskAdapter
from ..api.middleware import setup_error_handlers, setup_request_context_middleware
from ..config import configure
from ..contracts.context import (
    create_request_context,
    get_auth_context_from_request,
    get_request_context_safe,
    set_session_provider,
    with_request_context,
)

logger = logging.getLogger('contractguard.integrations')

_VIEW_ATTRS = ('__module__', '__name__', '__qualname__', '__doc__')


def _collect_input(view_args: Dict[str, Any]) -> Any:
    """Query args, then URL params, then the JSON body (later wins)."""
    body = request.get_json(silent=True)
    if body is not None and not isinstance(body, dict):
        return body

    payload: Dict[str, Any] = request.args.to_dict()
    payload.update(view_args)
    if body:
        payload.update(body)
    return payload


def to_jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    return value


def contract_view(op, adapter: Optional[FlaskAdapter] = None):
    """
    Turn a contracted operation into a Flask view.

    The operation receives the collected request input; its output is
    jsonified. Violations propagate to the error envelope.
    """
    @functools.wraps(op, assigned=_VIEW_ATTRS, updated=())
    async def view(**view_args):
        payload = _collect_input(view_args)

        ctx = get_request_context_safe()
        if ctx is None or ctx.request is not request._get_current_object():
            chosen = adapter or adapter_registry.get(FlaskAdapter.name) or FlaskAdapter()
            ctx = create_request_context(chosen, request._get_current_object())

        with with_request_context(ctx):
            result = await op(payload)

        return jsonify(to_jsonable(result))

    return view


def init_app(
    app: Flask,
    config: Optional[Dict[str, Any]] = None,
    adapter: Optional[FlaskAdapter] = None,
    catch_all_errors: bool = False,
) -> FlaskAdapter:
    """
    Wire contract enforcement into a Flask app.

    Args:
        app: Flask application instance
        config: Optional ContractConfig overrides (may include "preset")
        adapter: Adapter to register (default FlaskAdapter())
        catch_all_errors: Also turn non-contract exceptions into a generic
            500 envelope. Off by default, so they propagate unchanged.

    Returns:
        The registered adapter
    """
    if config:
        configure(**config)

    adapter = adapter or FlaskAdapter()
    adapter_registry.register(adapter)
    set_session_provider(get_auth_context_from_request)

    setup_request_context_middleware(app, adapter)
    setup_error_handlers(app, catch_all=catch_all_errors)

    app.extensions['contractguard'] = adapter
    logger.info(f"Contract enforcement initialized (adapter={adapter.name})")
    return adapter
