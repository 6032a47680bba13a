"""
Request context middleware - X-Request-ID plus a bound RequestContext.

Provides:
- Request ID injection on every request (g.request_id, X-Request-ID header)
- A RequestContext bound for the request so get_auth_context_from_request
  can find the adapter and the raw request
"""

import uuid

from flask import Flask, request, g

from ...contracts.context import (
    clear_request_context,
    create_request_context,
    reset_request_context,
    set_request_context,
)


def setup_request_context_middleware(app: Flask, adapter) -> None:
    """
    Set up request ID and request context middleware on Flask app.

    Injects:
    - g.request_id and the X-Request-ID response header
    - a RequestContext(adapter, request) for the duration of the request

    Args:
        app: Flask application instance
        adapter: Adapter bound into every request's RequestContext
    """

    @app.before_request
    def bind_request_context():
        """Inject request ID and bind the RequestContext before each request."""
        # Use existing header if provided, otherwise generate new
        request_id = request.headers.get('X-Request-ID')
        if not request_id:
            request_id = str(uuid.uuid4())
        g.request_id = request_id

        ctx = create_request_context(adapter, request._get_current_object())
        ctx.metadata['request_id'] = request_id
        g.contract_request_context = ctx
        g.contract_request_context_token = set_request_context(ctx)

    @app.after_request
    def add_request_id_header(response):
        """Add request ID to response headers."""
        if hasattr(g, 'request_id'):
            response.headers['X-Request-ID'] = g.request_id
        return response

    @app.teardown_request
    def unbind_request_context(exc):
        token = g.pop('contract_request_context_token', None)
        if token is None:
            return
        try:
            reset_request_context(token)
        except ValueError:
            # Token was created in another context
            clear_request_context()
