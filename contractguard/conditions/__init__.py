"""
Condition primitives for contract pipelines.

Each factory returns a tagged condition (Predicate, Transformer or
OutputPredicate) built once and reused across calls.
"""

from .auth import auth
from .owns import owns
from .validation import validates, returns, pydantic_validator
from .rate_limit import rate_limit, clear_rate_limit, get_rate_limit_status
from .audit import (
    audit_log,
    audit_log_failure,
    sanitize_for_audit,
    extract_resource_id,
    submit_audit_record,
)
from .business_rules import business_rule

__all__ = [
    'auth',
    'owns',
    'validates',
    'returns',
    'pydantic_validator',
    'rate_limit',
    'clear_rate_limit',
    'get_rate_limit_status',
    'audit_log',
    'audit_log_failure',
    'sanitize_for_audit',
    'extract_resource_id',
    'submit_audit_record',
    'business_rule',
]
