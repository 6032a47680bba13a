"""
contractguard - declarative contracts for async operations.

    from contractguard import contract, auth, validates, audit_log

    @contract(requires=[auth("user"), validates(CreatePost)],
              ensures=[audit_log("create_post")],
              layer="business")
    async def create_post(input, context=None):
        ...
"""

from .config import ContractConfig, configure, get_config, reset_config
from .contracts import (
    ErrorCategory,
    ErrorType,
    ContractError,
    ContractViolationError,
    ContractConfigurationError,
    Predicate,
    Transformer,
    OutputPredicate,
    PipelineSpec,
    User,
    Session,
    AuthContext,
    set_session_provider,
    clear_session_provider,
    get_request_context,
    with_request_context,
    contract,
    guard,
    apply_contract,
)
from .conditions import (
    auth,
    owns,
    validates,
    returns,
    rate_limit,
    clear_rate_limit,
    get_rate_limit_status,
    audit_log,
    audit_log_failure,
    business_rule,
)
from .contracts.templates import (
    combine,
    authenticated,
    with_ownership,
    validated,
    rate_limited,
    audited,
    with_business_rules,
    admin_only,
    public_endpoint,
    secure_crud,
    batch_operation,
    business_logic,
    data_operation,
    user_operation,
    create_contract,
    read_contract,
    update_contract,
    delete_contract,
    smart_contract,
)

__version__ = "0.1.0"

__all__ = [
    # config
    'ContractConfig', 'configure', 'get_config', 'reset_config',
    # errors
    'ErrorCategory', 'ErrorType', 'ContractError', 'ContractViolationError',
    'ContractConfigurationError',
    # pipeline
    'Predicate', 'Transformer', 'OutputPredicate', 'PipelineSpec',
    'contract', 'guard', 'apply_contract',
    # context
    'User', 'Session', 'AuthContext', 'set_session_provider',
    'clear_session_provider', 'get_request_context', 'with_request_context',
    # conditions
    'auth', 'owns', 'validates', 'returns', 'rate_limit', 'clear_rate_limit',
    'get_rate_limit_status', 'audit_log', 'audit_log_failure', 'business_rule',
    # templates
    'combine', 'authenticated', 'with_ownership', 'validated', 'rate_limited',
    'audited', 'with_business_rules', 'admin_only', 'public_endpoint',
    'secure_crud', 'batch_operation', 'business_logic', 'data_operation',
    'user_operation', 'create_contract', 'read_contract', 'update_contract',
    'delete_contract', 'smart_contract',
]
