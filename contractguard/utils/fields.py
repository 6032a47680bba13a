"""
Keyed-structure helpers shared by conditions.

Condition inputs arrive as dicts, pydantic models (after validates()) or
dataclasses. These helpers read them uniformly.
"""

import dataclasses
from typing import Any, Mapping, Optional

from pydantic import BaseModel

_MISSING = object()


def as_mapping(value: Any) -> Optional[Mapping[str, Any]]:
    """Mapping view of a keyed structure, or None if value is not one."""
    if isinstance(value, Mapping):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    return None


def read_field(value: Any, name: str, default: Any = None) -> Any:
    """Read name from a mapping, pydantic model or plain object."""
    if isinstance(value, Mapping):
        return value.get(name, default)
    if value is None:
        return default
    result = getattr(value, name, _MISSING)
    if result is _MISSING:
        return default
    return result
