"""
Contract pipeline core.

errors    - ContractError taxonomy and violation -> response mapping
registry  - condition variants and PipelineSpec
context   - auth context, session provider, per-request context
wrapper   - contract / guard / apply_contract

Templates live in contracts.templates; they build on the conditions
package and are imported from there or from the top-level package.
"""

from .errors import (
    ErrorCategory,
    ErrorType,
    ContractError,
    ContractViolationError,
    ContractConfigurationError,
    ViolationResponse,
)
from .registry import (
    Predicate,
    Transformer,
    OutputPredicate,
    PipelineSpec,
    as_condition,
)
from .context import (
    User,
    Session,
    AuthContext,
    RequestContext,
    set_session_provider,
    get_session_provider,
    clear_session_provider,
    create_request_context,
    get_request_context,
    get_request_context_safe,
    has_request_context,
    set_request_context,
    reset_request_context,
    clear_request_context,
    with_request_context,
    get_auth_context_from_request,
)
from .wrapper import ContractedOperation, contract, guard, apply_contract

__all__ = [
    'ErrorCategory',
    'ErrorType',
    'ContractError',
    'ContractViolationError',
    'ContractConfigurationError',
    'ViolationResponse',
    'Predicate',
    'Transformer',
    'OutputPredicate',
    'PipelineSpec',
    'as_condition',
    'User',
    'Session',
    'AuthContext',
    'RequestContext',
    'set_session_provider',
    'get_session_provider',
    'clear_session_provider',
    'create_request_context',
    'get_request_context',
    'get_request_context_safe',
    'has_request_context',
    'set_request_context',
    'reset_request_context',
    'clear_request_context',
    'with_request_context',
    'get_auth_context_from_request',
    'ContractedOperation',
    'contract',
    'guard',
    'apply_contract',
]
