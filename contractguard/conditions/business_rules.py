"""Arbitrary business rule condition."""

import inspect
from typing import Any, Callable

from ..contracts.errors import ContractError, ErrorType
from ..contracts.registry import Predicate, positional_arity


def business_rule(description: str, predicate: Callable[..., Any]) -> Predicate:
    """
    Fail BUSINESS_RULE_VIOLATION (message = description) when predicate is falsy.

    predicate(input, context) may be sync or async and may take only input.
    Exceptions raised by predicate propagate unchanged.
    """
    arity = positional_arity(predicate)

    async def check_rule(input, context):
        args = (input, context) if arity is None else (input, context)[:arity]
        passed = predicate(*args)
        if inspect.isawaitable(passed):
            passed = await passed
        if not passed:
            raise ContractError(description, ErrorType.BUSINESS_RULE_VIOLATION)
        return True

    return Predicate(check_rule, name=f"business_rule({description})")
