"""
Flask middleware for contracted APIs.

Provides:
- Request ID injection (X-Request-ID) and per-request RequestContext
- Error envelope standardization, including contract violations
"""

from .request_context import setup_request_context_middleware
from .error_envelope import (
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
