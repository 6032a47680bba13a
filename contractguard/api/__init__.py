"""
API package - HTTP surface for contract enforcement.

- Global middleware (request context, error envelope)
"""

from .middleware import (
    setup_request_context_middleware,
    setup_error_handlers,
    register_contract_error_handlers,
    violation_response,
)

__all__ = [
    'setup_request_context_middleware',
    'setup_error_handlers',
    'register_contract_error_handlers',
    'violation_response',
]
