"""
@contract decorator - applies condition pipelines to operations.

Usage:
    class DocumentService:
        @contract(
            requires=[auth("user"), validates(DocumentInput), owns("documentId")],
            ensures=[returns(Document)],
            layer="business",
        )
        async def update_document(self, input, context=None):
            ...

    # Or explicitly, at registration time
    update = guard(PipelineSpec(requires=[auth()]), update_document)

The pipeline, in order:
1. Resolve context (explicit argument, else the session provider)
2. requires: fail-fast; Transformers replace the working input
3. Call the operation with the working input (always awaited)
4. ensures over (output, input, context)
5. invariants over (original input, output)

Any failure leaves as exactly one ContractViolationError tagged with the
spec's layer. Nothing is retried.
"""

import functools
import inspect
import logging
import types
from typing import Any, Callable, Optional

from .context import coerce_auth_context, resolve_auth_context
from .errors import (
    ContractConfigurationError,
    ContractError,
    ContractViolationError,
    ErrorType,
)
from .registry import OutputPredicate, PipelineSpec, Transformer, positional_arity

logger = logging.getLogger('contractguard.pipeline')

# Default failure type and message template per phase
_PHASE_FAILURES = {
    "requires": (ErrorType.PRECONDITION_FAILED, "Precondition failed for {name}"),
    "ensures": (ErrorType.POSTCONDITION_FAILED, "Postcondition failed for {name}"),
    "invariants": (ErrorType.INVARIANT_VIOLATION, "Invariant condition failed in {name}"),
}


async def _resolve(value):
    if inspect.isawaitable(value):
        return await value
    return value


def _unexpected(error: BaseException) -> ContractError:
    return ContractError(
        str(error),
        error_type=ErrorType.UNEXPECTED_ERROR,
        details={
            "originalErrorMessage": str(error),
            "originalErrorType": type(error).__name__,
        },
    )


def _member_name(value: Any) -> str:
    # property/classmethod wrappers keep the qualified name on the inner function
    for inner in (value, getattr(value, "fget", None), getattr(value, "__func__", None)):
        qualname = getattr(inner, "__qualname__", None)
        if isinstance(qualname, str):
            return qualname
    return repr(value)


class ContractedOperation:
    """
    An operation wrapped in a PipelineSpec.

    Behaves like the function it wraps (name, docstring, binding as a
    method) but is always awaitable: ``await op(input, context=None)``.
    """

    def __init__(self, op: Callable[..., Any], spec: PipelineSpec, name: Optional[str] = None):
        if not callable(op):
            member = name or spec.name or _member_name(op)
            raise ContractConfigurationError(
                f"contract can only wrap callables. {member} ({type(op).__name__}) is not callable."
            )
        functools.update_wrapper(self, op)
        self._op = op
        self._op_arity = positional_arity(op)
        self.spec = spec
        self.contract_name = name or spec.name or getattr(op, '__qualname__', None) \
            or getattr(op, '__name__', 'operation')

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        bound = ContractedOperation.__new__(ContractedOperation)
        bound.__dict__.update(self.__dict__)
        bound._op = types.MethodType(self._op, instance)
        bound._op_arity = positional_arity(bound._op)
        return bound

    def __call__(self, input: Any = None, context: Any = None):
        return self._run(input, context)

    def __repr__(self):
        return f"<ContractedOperation {self.contract_name} layer={self.spec.layer}>"

    async def _run(self, input, context):
        try:
            return await self._execute(input, context)
        except ContractViolationError as e:
            # Raised by a nested contracted call; re-tag with this layer
            raise self._violation(e.original_error) from e
        except ContractError as e:
            raise self._violation(e) from e
        except Exception as e:
            logger.exception(
                f"Unexpected error in {self.spec.layer}.{self.contract_name}",
                extra={
                    "event": "contract_unexpected_error",
                    "contract": self.contract_name,
                    "layer": self.spec.layer,
                    "error_type": type(e).__name__,
                },
            )
            raise self._violation(_unexpected(e), logged=True) from e

    async def _execute(self, input, context):
        spec = self.spec

        if context is None:
            context = await resolve_auth_context()
        else:
            context = coerce_auth_context(context)

        original_input = input
        for condition in spec.requires:
            result = await _resolve(condition.invoke(input, context))
            if isinstance(condition, Transformer):
                input = result
            else:
                self._check(result, "requires")

        if self._op_arity is not None and self._op_arity < 2:
            output = self._op(*(input, context)[:self._op_arity])
        else:
            output = self._op(input, context)
        output = await _resolve(output)

        for condition in spec.ensures:
            if isinstance(condition, OutputPredicate):
                result = condition.invoke(output, input, context)
            else:
                result = condition.invoke(output, context)
            self._check(await _resolve(result), "ensures")

        for condition in spec.invariants:
            result = await _resolve(condition.invoke(original_input, output))
            self._check(result, "invariants")

        return output

    def _check(self, result, phase: str) -> None:
        if isinstance(result, ContractError):
            raise result
        if result is False:
            error_type, template = _PHASE_FAILURES[phase]
            raise ContractError(
                template.format(name=self.contract_name),
                error_type=error_type,
                details={"contractName": self.contract_name},
            )

    def _violation(self, error: ContractError, logged: bool = False) -> ContractViolationError:
        violation = ContractViolationError(error, layer=self.spec.layer, contract_name=self.contract_name)
        if not logged:
            logger.warning(
                f"Contract violation in {self.spec.layer}.{self.contract_name}: {error.message}",
                extra={
                    "event": "contract_violation",
                    "contract": self.contract_name,
                    "layer": self.spec.layer,
                    "error_type": error.type,
                    "category": error.category.value,
                },
            )
        return violation


def guard(spec: PipelineSpec, op: Callable[..., Any], name: Optional[str] = None) -> ContractedOperation:
    """Wrap op in spec. The explicit (non-decorator) form of @contract."""
    return ContractedOperation(op, spec, name=name)


def contract(
    requires=None,
    ensures=None,
    invariants=None,
    layer: Optional[str] = None,
    name: Optional[str] = None,
    spec: Optional[PipelineSpec] = None,
):
    """
    Decorator that enforces a condition pipeline on an operation.

    Args:
        requires: Conditions checked before the call, in order
        ensures: Conditions checked on the output, in order
        invariants: Conditions over (input, output), in order
        layer: Label attached to violations (default from configuration)
        name: Contract name used in messages (default: qualified function name)
        spec: A prebuilt PipelineSpec (mutually exclusive with the above)

    Returns:
        Decorator producing a ContractedOperation

    Raises:
        ContractConfigurationError: Invalid conditions, or the decorated
            object is not callable
    """
    if spec is None:
        spec = PipelineSpec(
            requires=requires,
            ensures=ensures,
            invariants=invariants,
            layer=layer,
            name=name,
        )
    elif any(v is not None for v in (requires, ensures, invariants, layer)):
        raise ContractConfigurationError("Pass either spec or requires/ensures/invariants/layer, not both")

    def decorator(fn: Callable[..., Any]) -> ContractedOperation:
        return ContractedOperation(fn, spec, name=name)

    return decorator


def apply_contract(owner: type, member: str, spec: PipelineSpec) -> ContractedOperation:
    """
    Wrap owner.member in spec at registration time.

    Raises:
        ContractConfigurationError: member is missing or not a method
    """
    qualified = f"{getattr(owner, '__name__', owner)}.{member}"
    raw = inspect.getattr_static(owner, member, None)
    is_static = isinstance(raw, staticmethod)
    if is_static:
        raw = raw.__func__
    if raw is None or isinstance(raw, classmethod) or not callable(raw):
        raise ContractConfigurationError(
            f"contract can only be applied to methods. {qualified} is not a method."
        )

    wrapped = ContractedOperation(raw, spec, name=spec.name or qualified)
    setattr(owner, member, staticmethod(wrapped) if is_static else wrapped)
    return wrapped
