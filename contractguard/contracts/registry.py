"""
Condition variants and pipeline specs.

A condition is one of three tagged variants, decided when it is built:
- Predicate: (input, context) -> bool
- Transformer: (input, context) -> new input (requires phase only)
- OutputPredicate: (output, input, context) -> bool (ensures phase only)

Plain callables dropped into a phase get that phase's default variant.
Callables that accept fewer positional parameters than the phase supplies
are called with the leading arguments only.

Phase argument order:
    requires    Predicate/Transformer  (input, context)
    ensures     OutputPredicate        (output, input, context)
                Predicate              (output, context)
    invariants  Predicate              (input, output)
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Tuple, Union

from ..config import get_config
from .errors import ContractConfigurationError


def positional_arity(fn: Callable) -> Optional[int]:
    """Number of positional parameters fn accepts, or None when unbounded/unknown."""
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        return None

    count = 0
    for param in sig.parameters.values():
        if param.kind == inspect.Parameter.VAR_POSITIONAL:
            return None
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    return count


@dataclass(frozen=True)
class _Condition:
    fn: Callable[..., Any]
    name: Optional[str] = None
    arity: Optional[int] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        if not callable(self.fn):
            raise ContractConfigurationError(
                f"{type(self).__name__} requires a callable, got {type(self.fn).__name__}"
            )
        object.__setattr__(self, "arity", positional_arity(self.fn))
        if self.name is None:
            object.__setattr__(self, "name", getattr(self.fn, "__name__", repr(self.fn)))

    def invoke(self, *args):
        """Call the payload with as many leading args as it accepts. May return an awaitable."""
        if self.arity is not None:
            args = args[:self.arity]
        return self.fn(*args)


@dataclass(frozen=True)
class Predicate(_Condition):
    """Check that passes (truthy) or fails (False / raise / returned ContractError)."""


@dataclass(frozen=True)
class Transformer(_Condition):
    """Check whose return value replaces the working input."""


@dataclass(frozen=True)
class OutputPredicate(_Condition):
    """Check over (output, input, context)."""


Condition = Union[Predicate, Transformer, OutputPredicate]

# phase -> (default variant, allowed variants)
PHASE_RULES = {
    "requires": (Predicate, (Predicate, Transformer)),
    "ensures": (OutputPredicate, (OutputPredicate, Predicate)),
    "invariants": (Predicate, (Predicate,)),
}


def as_condition(value: Any, phase: str) -> Condition:
    """Normalize a plain callable or tagged variant for the given phase."""
    default, allowed = PHASE_RULES[phase]

    if isinstance(value, _Condition):
        if not isinstance(value, allowed):
            raise ContractConfigurationError(
                f"{type(value).__name__} '{value.name}' is not allowed in {phase}"
            )
        return value

    if callable(value):
        return default(value)

    raise ContractConfigurationError(
        f"Conditions in {phase} must be callables, got {type(value).__name__}"
    )


def _normalize_phase(conditions: Optional[Iterable[Any]], phase: str) -> Tuple[Condition, ...]:
    if conditions is None:
        return ()
    if callable(conditions) or isinstance(conditions, _Condition):
        conditions = [conditions]
    return tuple(as_condition(c, phase) for c in conditions)


@dataclass(frozen=True)
class PipelineSpec:
    """Immutable description of what a contracted operation checks."""
    requires: Tuple[Condition, ...] = ()
    ensures: Tuple[Condition, ...] = ()
    invariants: Tuple[Condition, ...] = ()
    layer: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "requires", _normalize_phase(self.requires, "requires"))
        object.__setattr__(self, "ensures", _normalize_phase(self.ensures, "ensures"))
        object.__setattr__(self, "invariants", _normalize_phase(self.invariants, "invariants"))

        if self.layer is None:
            object.__setattr__(self, "layer", get_config().default_layer)
        if not isinstance(self.layer, str) or not self.layer.strip():
            raise ContractConfigurationError("Contract layer must be a non-empty string")

    @property
    def is_empty(self) -> bool:
        return not (self.requires or self.ensures or self.invariants)
