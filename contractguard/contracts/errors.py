"""
Contract error taxonomy.

Every failure that leaves a contracted operation is a ContractViolationError
wrapping exactly one ContractError. The ContractError carries:
- type: one of the fixed ErrorType codes
- category: the ErrorCategory that drives the HTTP mapping
- message/details: what went wrong, for logs and response bodies

Response mapping (get_appropriate_response) is pure: it returns the status,
body and optional redirect target and leaves response construction to the
calling integration.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..config import get_config
from ..constants import DEFAULT_LAYER, DEFAULT_LOGIN_URL, REDIRECT_LAYERS


class ErrorCategory(str, Enum):
    """Category of a contract failure. Drives the response mapping."""
    AUTHENTICATION = "AUTHENTICATION"
    AUTHORIZATION = "AUTHORIZATION"
    VALIDATION = "VALIDATION"
    RATE_LIMIT = "RATE_LIMIT"
    BUSINESS_RULE = "BUSINESS_RULE"
    UNEXPECTED = "UNEXPECTED"


class ErrorType(str, Enum):
    """Fixed set of contract failure codes."""
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    OWNERSHIP_DENIED = "OWNERSHIP_DENIED"
    MISSING_RESOURCE_ID = "MISSING_RESOURCE_ID"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    OUTPUT_VALIDATION_FAILED = "OUTPUT_VALIDATION_FAILED"
    RATE_LIMIT_ERROR = "RATE_LIMIT_ERROR"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    POSTCONDITION_FAILED = "POSTCONDITION_FAILED"
    INVARIANT_VIOLATION = "INVARIANT_VIOLATION"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"

    @property
    def category(self) -> ErrorCategory:
        return ERROR_TYPE_CATEGORIES[self]


ERROR_TYPE_CATEGORIES = {
    ErrorType.AUTHENTICATION_REQUIRED: ErrorCategory.AUTHENTICATION,
    ErrorType.SESSION_EXPIRED: ErrorCategory.AUTHENTICATION,
    ErrorType.INSUFFICIENT_ROLE: ErrorCategory.AUTHORIZATION,
    ErrorType.OWNERSHIP_DENIED: ErrorCategory.AUTHORIZATION,
    ErrorType.MISSING_RESOURCE_ID: ErrorCategory.VALIDATION,
    ErrorType.VALIDATION_FAILED: ErrorCategory.VALIDATION,
    ErrorType.OUTPUT_VALIDATION_FAILED: ErrorCategory.VALIDATION,
    ErrorType.PRECONDITION_FAILED: ErrorCategory.VALIDATION,
    ErrorType.POSTCONDITION_FAILED: ErrorCategory.VALIDATION,
    ErrorType.RATE_LIMIT_ERROR: ErrorCategory.RATE_LIMIT,
    ErrorType.BUSINESS_RULE_VIOLATION: ErrorCategory.BUSINESS_RULE,
    ErrorType.INVARIANT_VIOLATION: ErrorCategory.BUSINESS_RULE,
    ErrorType.UNEXPECTED_ERROR: ErrorCategory.UNEXPECTED,
}

# Category -> HTTP status
CATEGORY_STATUS = {
    ErrorCategory.AUTHENTICATION: 401,
    ErrorCategory.AUTHORIZATION: 403,
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.RATE_LIMIT: 429,
    ErrorCategory.BUSINESS_RULE: 422,
    ErrorCategory.UNEXPECTED: 500,
}

UNEXPECTED_MESSAGE = "An unexpected error occurred"


class ContractError(Exception):
    """A categorized, coded contract failure raised (or returned) by a condition."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.PRECONDITION_FAILED,
        code: Optional[str] = None,
        category: Optional[ErrorCategory] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_type = ErrorType(error_type)
        self.code = code or self.error_type.value
        self.category = ErrorCategory(category) if category else self.error_type.category
        self.details = dict(details or {})

    @property
    def type(self) -> str:
        return self.error_type.value

    def __str__(self):
        return self.message

    def __repr__(self):
        return f"{type(self).__name__}({self.type}: {self.message!r})"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        data = {
            "code": self.code,
            "type": self.type,
            "category": self.category.value,
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        return data


@dataclass
class ViolationResponse:
    """What an integration should send back for a violation."""
    status: int
    body: Dict[str, Any] = field(default_factory=dict)
    redirect: Optional[str] = None


class ContractViolationError(ContractError):
    """
    The single error type that leaves a contracted operation.

    Wraps the originating ContractError and tags it with the layer of the
    operation that raised it.
    """

    def __init__(
        self,
        original_error: ContractError,
        layer: str = DEFAULT_LAYER,
        contract_name: Optional[str] = None,
    ):
        if original_error is None:
            raise ValueError("ContractViolationError requires an original_error")
        self.layer = layer
        self.contract_name = contract_name
        self.original_error = original_error
        prefix = f"{layer}.{contract_name}" if contract_name else layer
        super().__init__(
            f"Contract violation in {prefix}: {original_error.message}",
            error_type=original_error.error_type,
            code=original_error.code,
            category=original_error.category,
            details=original_error.details,
        )

    def get_appropriate_response(self, login_url: Optional[str] = None) -> ViolationResponse:
        """
        Map the violation category to a response description.

        Authentication failures in redirect layers (e.g. "presentation")
        produce a redirect to the login page; everything else maps the
        category to a status code. No I/O happens here.
        """
        original = self.original_error
        category = original.category
        status = CATEGORY_STATUS[category]

        if category == ErrorCategory.AUTHENTICATION and self.layer in REDIRECT_LAYERS:
            if login_url is None:
                login_url = get_config().login_url or DEFAULT_LOGIN_URL
            return ViolationResponse(
                status=302,
                body={"code": original.code, "message": original.message},
                redirect=login_url,
            )

        if category == ErrorCategory.UNEXPECTED:
            message = UNEXPECTED_MESSAGE
        else:
            message = original.message

        body = {
            "code": original.code,
            "type": original.type,
            "category": category.value,
            "message": message,
            "layer": self.layer,
        }
        if original.details and category != ErrorCategory.UNEXPECTED:
            body["details"] = original.details
        return ViolationResponse(status=status, body=body)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["layer"] = self.layer
        if self.contract_name:
            data["contractName"] = self.contract_name
        return data


class ContractConfigurationError(ValueError):
    """Raised for contract setup mistakes (bad spec, bad config, non-callable member)."""
