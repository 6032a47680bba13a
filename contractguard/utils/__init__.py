"""
Utility modules for the contract engine.
"""
from .rate_limiter import (
    RateCounterStore,
    get_rate_store,
    get_rate_limit_key,
    get_rate_limit_status,
    clear_rate_limit,
)
from .audit_sink import LoggingAuditSink, SQLAuditSink, get_audit_sink
from .tokens import generate_token, decode_token, bearer_token

__all__ = [
    'RateCounterStore',
    'get_rate_store',
    'get_rate_limit_key',
    'get_rate_limit_status',
    'clear_rate_limit',
    'LoggingAuditSink',
    'SQLAuditSink',
    'get_audit_sink',
    'generate_token',
    'decode_token',
    'bearer_token',
]
