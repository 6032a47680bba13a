"""
Schema validation conditions.

validates() is a Transformer: the parsed value replaces the working input.
returns() is an OutputPredicate over the operation's output.

The schema validator is a capability: validator(schema, value) returns the
parsed value or raises. The default is pydantic:
TypeAdapter(schema).validate_python(value). Errors from the validator that
are instances of ContractConfig.validation_error_types (ValueError and
TypeError by default; add e.g. jsonschema.ValidationError for a jsonschema
validator) count as validation failures. Other errors propagate and end up
as UNEXPECTED_ERROR.
"""

from typing import Any, Callable, Dict, List, Optional

from pydantic import TypeAdapter

from ..config import get_config
from ..contracts.errors import ContractError, ErrorType
from ..contracts.registry import OutputPredicate, Transformer

SchemaValidator = Callable[[Any, Any], Any]


def pydantic_validator(schema: Any) -> Callable[[Any], Any]:
    """Parser for schema backed by a pydantic TypeAdapter (built on first use)."""
    adapter: List[TypeAdapter] = []

    def parse(value):
        if not adapter:
            adapter.append(TypeAdapter(schema))
        return adapter[0].validate_python(value)

    return parse


def format_issues(error: Exception) -> List[Dict[str, Any]]:
    """Field-level issues as [{field, message, type}]."""
    errors = getattr(error, 'errors', None)
    if not callable(errors):
        return [{"field": "", "message": str(error), "type": type(error).__name__}]

    try:
        raw = errors()
    except TypeError:
        return [{"field": "", "message": str(error), "type": type(error).__name__}]

    issues = []
    for item in raw:
        loc = item.get('loc', ())
        issues.append({
            "field": ".".join(str(part) for part in loc),
            "message": item.get('msg', ''),
            "type": item.get('type', ''),
        })
    return issues


def _parser(schema: Any, validator: Optional[SchemaValidator]) -> Callable[[Any], Any]:
    default = pydantic_validator(schema)

    def parse(value):
        chosen = validator or get_config().schema_validator
        if chosen is not None:
            return chosen(schema, value)
        return default(value)

    return parse


def validates(
    schema: Any,
    transformer: Optional[Callable[[Any], Any]] = None,
    validator: Optional[SchemaValidator] = None,
) -> Transformer:
    """
    Parse the input against schema; the parsed value becomes the new input.

    Args:
        schema: Anything the validator understands (pydantic model, type, ...)
        transformer: Optional post-parse mapping applied to the parsed value
        validator: Override for the schema validator capability

    Raises (inside the pipeline):
        ContractError(VALIDATION_FAILED) with details["issues"]
    """
    parse = _parser(schema, validator)

    def validate_input(input, context):
        try:
            parsed = parse(input)
        except get_config().validation_error_types as e:
            raise ContractError(
                "Input validation failed",
                ErrorType.VALIDATION_FAILED,
                details={"issues": format_issues(e)},
            ) from e
        return transformer(parsed) if transformer else parsed

    return Transformer(validate_input, name=f"validates({getattr(schema, '__name__', schema)})")


def returns(schema: Any, validator: Optional[SchemaValidator] = None) -> OutputPredicate:
    """Check the output against schema. Failure is OUTPUT_VALIDATION_FAILED."""
    parse = _parser(schema, validator)

    def validate_output(output, input, context):
        try:
            parse(output)
        except get_config().validation_error_types as e:
            return ContractError(
                "Output does not match expected schema",
                ErrorType.OUTPUT_VALIDATION_FAILED,
                details={"issues": format_issues(e)},
            )
        return True

    return OutputPredicate(validate_output, name=f"returns({getattr(schema, '__name__', schema)})")
