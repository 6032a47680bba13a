"""
Reusable contract fragments and templates.

Fragments are plain dicts with any of requires/ensures/invariants/layer/name.
combine() concatenates them (and PipelineSpecs) in argument order into one
PipelineSpec; the last layer given wins.

Usage:
    @contract(spec=combine(
        authenticated("editor"),
        validated(DocumentInput, Document),
        with_ownership("documentId"),
        audited("update_document"),
        {"layer": "business"},
    ))
    async def update_document(input, context=None):
        ...
"""

from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union

from ..conditions.audit import audit_log
from ..conditions.auth import auth
from ..conditions.business_rules import business_rule
from ..conditions.owns import owns
from ..conditions.rate_limit import rate_limit
from ..conditions.validation import returns, validates
from .errors import ContractConfigurationError, ContractError, ErrorType
from .registry import PipelineSpec, Predicate

Fragment = Dict[str, Any]

DEFAULT_BATCH_LIMIT = 1000
DEFAULT_DELETE_LIMIT = 10

CRUD_OPERATIONS = ("create", "read", "update", "delete")
VISIBILITIES = ("public", "private", "admin")


def combine(*parts: Union[Mapping[str, Any], PipelineSpec]) -> PipelineSpec:
    requires, ensures, invariants = [], [], []
    layer: Optional[str] = None
    name: Optional[str] = None

    for part in parts:
        if part is None:
            continue
        if isinstance(part, PipelineSpec):
            part = {
                "requires": part.requires,
                "ensures": part.ensures,
                "invariants": part.invariants,
                "layer": part.layer,
                "name": part.name,
            }
        requires.extend(part.get("requires") or ())
        ensures.extend(part.get("ensures") or ())
        invariants.extend(part.get("invariants") or ())
        if part.get("layer"):
            layer = part["layer"]
        if part.get("name"):
            name = part["name"]

    return PipelineSpec(
        requires=tuple(requires),
        ensures=tuple(ensures),
        invariants=tuple(invariants),
        layer=layer,
        name=name,
    )


# =============================================================================
# FRAGMENTS
# =============================================================================

def authenticated(role: Optional[str] = "user") -> Fragment:
    return {"requires": [auth(role)]}


def with_ownership(resource_field: str, lookup=None) -> Fragment:
    return {"requires": [owns(resource_field, lookup=lookup)]}


def validated(input_schema: Any, output_schema: Any = None) -> Fragment:
    fragment: Fragment = {"requires": [validates(input_schema)]}
    if output_schema is not None:
        fragment["ensures"] = [returns(output_schema)]
    return fragment


def rate_limited(operation: str, limit: int, window_ms: Optional[int] = None) -> Fragment:
    return {"requires": [rate_limit(operation, limit, window_ms)]}


def audited(action: str, **options) -> Fragment:
    return {"ensures": [audit_log(action, **options)]}


def with_business_rules(*rules: Union[tuple, Mapping[str, Any]]) -> Fragment:
    """Rules as (description, predicate) pairs or {description, rule} mappings."""
    conditions = []
    for rule in rules:
        if isinstance(rule, Mapping):
            conditions.append(business_rule(rule["description"], rule["rule"]))
        else:
            description, predicate = rule
            conditions.append(business_rule(description, predicate))
    return {"requires": conditions}


# =============================================================================
# TEMPLATES
# =============================================================================

def admin_only(operation: str, limit: int = 20) -> PipelineSpec:
    """Admin role, per-admin rate limit, audited."""
    return combine(
        authenticated("admin"),
        rate_limited(f"admin_{operation}", limit),
        audited(f"admin_{operation}"),
        {"layer": "action"},
    )


def public_endpoint(
    operation: str,
    input_schema: Any = None,
    output_schema: Any = None,
    limit: Optional[int] = None,
) -> PipelineSpec:
    """
    No authentication. Optional schema validation, audited.

    limit applies a per-user rate limit, which needs an authenticated
    caller; leave it None for anonymous endpoints.
    """
    return combine(
        validated(input_schema, output_schema) if input_schema is not None else None,
        rate_limited(f"public_{operation}", limit) if limit is not None else None,
        audited(f"public_{operation}"),
        {"layer": "presentation"},
    )


def secure_crud(
    operation: str,
    input_schema: Any,
    output_schema: Any = None,
    role: str = "user",
    resource_field: Optional[str] = None,
    limit: Optional[int] = 10,
    lookup=None,
) -> PipelineSpec:
    """auth(role) -> validates -> owns(resource_field) -> rate_limit; returns + audit."""
    return combine(
        authenticated(role),
        validated(input_schema, output_schema),
        with_ownership(resource_field, lookup=lookup) if resource_field else None,
        rate_limited(operation, limit) if limit else None,
        audited(operation),
        {"layer": "action"},
    )


def _batch_size_check(max_items: int) -> Callable[[Any], bool]:
    def check_batch(input):
        if not isinstance(input, (list, tuple)):
            raise ContractError("Input must be a list", ErrorType.VALIDATION_FAILED)
        if len(input) > max_items:
            raise ContractError(
                f"Batch size must be <= {max_items} items",
                ErrorType.VALIDATION_FAILED,
                details={"maxItems": max_items, "received": len(input)},
            )
        return True
    return check_batch


def batch_operation(
    max_items: int = DEFAULT_BATCH_LIMIT,
    role: str = "admin",
    action: str = "batch_operation",
) -> PipelineSpec:
    """List input of at most max_items, role-gated, audited."""
    return combine(
        authenticated(role),
        {"requires": [Predicate(_batch_size_check(max_items), name=f"batch_size({max_items})")]},
        audited(action),
        {"layer": "action"},
    )


def business_logic(rules: Iterable[Any], audit_action: str) -> PipelineSpec:
    """Described business rules, audited, on the business layer."""
    return combine(
        with_business_rules(*rules),
        audited(audit_action),
        {"layer": "business"},
    )


def data_operation(
    operation: str,
    input_schema: Any,
    output_schema: Any = None,
    rules: Iterable[Any] = (),
) -> PipelineSpec:
    return combine(
        validated(input_schema, output_schema),
        with_business_rules(*rules),
        audited(f"data_{operation}"),
        {"layer": "data"},
    )


def user_operation(
    operation: str,
    resource_field: str,
    input_schema: Any,
    output_schema: Any = None,
    role: str = "user",
    limit: Optional[int] = None,
    lookup=None,
) -> PipelineSpec:
    """auth(role) -> owns(resource_field) -> validates -> rate_limit; returns + audit."""
    return combine(
        authenticated(role),
        with_ownership(resource_field, lookup=lookup),
        validated(input_schema, output_schema),
        rate_limited(f"user_{operation}", limit) if limit else None,
        audited(f"user_{operation}"),
        {"layer": "action"},
    )


# =============================================================================
# CRUD FACTORY
# =============================================================================

def create_contract(
    input_schema: Any,
    output_schema: Any,
    role: str = "user",
    limit: Optional[int] = None,
    rules: Iterable[Any] = (),
) -> PipelineSpec:
    return combine(
        secure_crud("create", input_schema, output_schema, role=role, limit=limit),
        with_business_rules(*rules),
    )


def read_contract(
    input_schema: Any,
    output_schema: Any,
    resource_field: str,
    role: str = "user",
    limit: Optional[int] = None,
    lookup=None,
) -> PipelineSpec:
    return user_operation("read", resource_field, input_schema, output_schema,
                          role=role, limit=limit, lookup=lookup)


def update_contract(
    input_schema: Any,
    output_schema: Any,
    resource_field: str,
    role: str = "user",
    limit: Optional[int] = None,
    rules: Iterable[Any] = (),
    lookup=None,
) -> PipelineSpec:
    return combine(
        user_operation("update", resource_field, input_schema, output_schema,
                       role=role, limit=limit, lookup=lookup),
        with_business_rules(*rules),
    )


def delete_contract(
    input_schema: Any,
    resource_field: str,
    role: str = "user",
    limit: Optional[int] = None,
    rules: Iterable[Any] = (),
    lookup=None,
) -> PipelineSpec:
    """Deletes are rate limited even when no limit is given."""
    return combine(
        user_operation("delete", resource_field, input_schema,
                       role=role, limit=limit or DEFAULT_DELETE_LIMIT, lookup=lookup),
        with_business_rules(*rules),
    )


# =============================================================================
# SMART CONTRACT
# =============================================================================

def smart_contract(
    operation: str,
    resource: str,
    visibility: str,
    limit: Optional[int] = None,
    schemas: Optional[Mapping[str, Any]] = None,
    lookup=None,
) -> PipelineSpec:
    """
    Infer a pipeline from a CRUD operation and a visibility level.

    - public: no authentication
    - private: auth("user"), plus owns("<resource>Id") for everything but create
    - admin: auth("admin")

    create/update validate input against schemas["create"] / schemas["update"];
    create/read/update check output against schemas["output"]. A missing
    schema skips that check. Rate limited as "<operation>_<resource>" when
    limit is given, and always audited under the same action name.

    Raises:
        ContractConfigurationError: Unknown operation or visibility
    """
    if operation not in CRUD_OPERATIONS:
        raise ContractConfigurationError(
            f"smart_contract operation must be one of {', '.join(CRUD_OPERATIONS)}, got {operation!r}"
        )
    if visibility not in VISIBILITIES:
        raise ContractConfigurationError(
            f"smart_contract visibility must be one of {', '.join(VISIBILITIES)}, got {visibility!r}"
        )

    schemas = schemas or {}
    action = f"{operation}_{resource}"
    parts = []

    if visibility == "private":
        parts.append(authenticated("user"))
        if operation != "create":
            parts.append(with_ownership(f"{resource}Id", lookup=lookup))
    elif visibility == "admin":
        parts.append(authenticated("admin"))

    if operation in ("create", "update") and schemas.get(operation) is not None:
        parts.append({"requires": [validates(schemas[operation])]})

    if limit:
        parts.append(rate_limited(action, limit))

    parts.append(audited(action))

    if operation != "delete" and schemas.get("output") is not None:
        parts.append({"ensures": [returns(schemas["output"])]})

    return combine(*parts)
