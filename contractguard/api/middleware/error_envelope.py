"""
Error envelope middleware - Standardize all error responses.

Provides consistent error response format:
{
    "error": {
        "code": "INSUFFICIENT_ROLE",
        "message": "Required role: admin, User roles: user",
        "category": "AUTHORIZATION",
        "layer": "business",
        "requestId": "uuid"
    }
}

Contract violations use the status/redirect chosen by
ContractViolationError.get_appropriate_response(); other HTTP errors keep
their own status. Other exceptions propagate unless the generic handler is
requested, which answers them with a 500 and a generic message.
"""

import logging
from flask import Flask, jsonify, g, redirect
from werkzeug.exceptions import HTTPException

from ...contracts.errors import ContractViolationError


logger = logging.getLogger('api.middleware.error')


def _request_id():
    return getattr(g, 'request_id', None)


def violation_response(error: ContractViolationError):
    """
    Flask response for a contract violation.

    Redirects when the violation asks for one, otherwise returns the JSON
    envelope with the mapped status code.
    """
    mapped = error.get_appropriate_response()
    if mapped.redirect:
        return redirect(mapped.redirect)

    body = dict(mapped.body)
    envelope = {
        "code": body.pop("code", error.code),
        "message": body.pop("message", error.message),
        "requestId": _request_id(),
    }
    envelope.update(body)
    response = jsonify({"error": envelope})
    if envelope["requestId"]:
        response.headers['X-Request-ID'] = envelope["requestId"]
    return response, mapped.status


def register_contract_error_handlers(app: Flask) -> None:
    """Answer ContractViolationError with the envelope; other errors propagate."""

    @app.errorhandler(ContractViolationError)
    def handle_contract_violation(error):
        return violation_response(error)


def setup_error_handlers(app: Flask, catch_all: bool = False) -> None:
    """
    Set up standardized error handlers on Flask app.

    Handles:
    - Contract violations (mapped status or redirect)
    - HTTP exceptions (400, 404, 500, etc.)
    - Unhandled Python exceptions, only when catch_all is set; otherwise
      they propagate to Flask unchanged

    Args:
        app: Flask application instance
        catch_all: Answer any other exception with a generic 500 envelope
    """
    register_contract_error_handlers(app)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        """Handle Flask/Werkzeug HTTP exceptions."""
        request_id = _request_id()

        # "Not Found" -> "NOT_FOUND"
        code = error.name.upper().replace(' ', '_')

        response = jsonify({
            "error": {
                "code": code,
                "message": error.description,
                "requestId": request_id,
            }
        })

        if request_id:
            response.headers['X-Request-ID'] = request_id

        return response, error.code

    if not catch_all:
        return

    @app.errorhandler(Exception)
    def handle_generic_error(error):
        """Handle unhandled Python exceptions."""
        request_id = _request_id()

        logger.exception(
            f"Unhandled error: {error}",
            extra={
                "event": "unhandled_error",
                "request_id": request_id,
                "error_type": type(error).__name__,
            }
        )

        response = jsonify({
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "requestId": request_id,
            }
        })

        if request_id:
            response.headers['X-Request-ID'] = request_id

        return response, 500
