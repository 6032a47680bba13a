"""
Environment adapters - normalize framework user/session shapes.

An adapter knows how to detect its environment and pull the current user
and session out of a framework request. transform_user/transform_session
map whatever the framework returns onto the canonical AuthContext mapping:

    user:    {id, email, name, roles, ...}
    session: {id, expiresAt, ...}

Adapters are registered by name in AdapterRegistry; auto_detect() returns
the first registered adapter whose environment is active.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..constants import (
    DEFAULT_SESSION_TTL_HOURS,
    DEFAULT_USER_ROLES,
    SESSION_EXPIRY_ALIASES,
    SESSION_ID_ALIASES,
    USER_ID_ALIASES,
    USER_NAME_ALIASES,
)
from ..contracts.context import to_utc_datetime
from ..contracts.errors import ContractConfigurationError

logger = logging.getLogger('contractguard.adapters')


def _to_dict(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, Mapping):
        return dict(value)
    if hasattr(value, '__dict__') and not isinstance(value, type):
        return {k: v for k, v in vars(value).items() if not k.startswith('_')}
    return None


def _first(data: Mapping[str, Any], names) -> Any:
    for name in names:
        value = data.get(name)
        if value:
            return value
    return None


class BaseAdapter(ABC):
    """Base class for environment adapters."""

    name: str = ""
    version: str = "1.0.0"

    def __init__(self, **options):
        self.options = options

    @abstractmethod
    def detect_environment(self) -> bool:
        """True when this adapter's framework is active."""

    @abstractmethod
    def extract_user(self, request: Any) -> Any:
        """Raw user for request, or None. May be a coroutine function."""

    @abstractmethod
    def extract_session(self, request: Any) -> Any:
        """Raw session for request, or None. May be a coroutine function."""

    def transform_user(self, user: Any) -> Optional[Dict[str, Any]]:
        """
        Default user mapping.

        id <- id | sub | userId | _id, name <- name | displayName,
        roles <- roles | [role] | ["user"]. Other fields are kept.
        """
        data = _to_dict(user)
        if data is None:
            return None

        roles = data.get('roles')
        if not roles:
            roles = [data['role']] if data.get('role') else list(DEFAULT_USER_ROLES)

        data.update({
            'id': _first(data, USER_ID_ALIASES),
            'email': data.get('email'),
            'name': _first(data, USER_NAME_ALIASES),
            'roles': list(roles),
        })
        return data

    def transform_session(self, session: Any) -> Optional[Dict[str, Any]]:
        """
        Default session mapping.

        id <- id | sessionId | sid, expiresAt <- expiresAt | expires parsed
        to a UTC datetime (unparseable values are kept as is and fail auth),
        absent expiry -> now + 24h.
        """
        data = _to_dict(session)
        if data is None:
            return None

        raw_expiry = _first(data, SESSION_EXPIRY_ALIASES)
        if raw_expiry is None:
            expires_at = datetime.now(timezone.utc) + timedelta(hours=DEFAULT_SESSION_TTL_HOURS)
        else:
            parsed = to_utc_datetime(raw_expiry)
            expires_at = parsed if parsed is not None else raw_expiry

        data.update({
            'id': _first(data, SESSION_ID_ALIASES),
            'expiresAt': expires_at,
        })
        return data

    def handle_error(self, error: Exception) -> Optional[Exception]:
        """
        Default error handling: log and suppress.

        Return an exception to have it raised instead; None swallows.
        """
        logger.warning(f"[{self.name}] Adapter error: {error}")
        return None

    @staticmethod
    def safe_get(obj: Any, path: str, fallback: Any = None) -> Any:
        """Read a dotted path through mappings/attributes, fallback on any miss."""
        current = obj
        for key in path.split('.'):
            if current is None:
                return fallback
            if isinstance(current, Mapping):
                if key not in current:
                    return fallback
                current = current[key]
            elif hasattr(current, key):
                current = getattr(current, key)
            else:
                return fallback
        return current


class AdapterRegistry:
    """Named adapters in registration order."""

    def __init__(self):
        self._adapters: Dict[str, BaseAdapter] = {}

    def register(self, adapter: BaseAdapter) -> None:
        if adapter is None or not getattr(adapter, 'name', None):
            raise ContractConfigurationError("Invalid adapter: adapter must have a name")
        self._adapters[adapter.name] = adapter
        logger.debug(f"Registered adapter {adapter.name} v{getattr(adapter, 'version', '?')}")

    def get(self, name: str) -> Optional[BaseAdapter]:
        if not isinstance(name, str) or not name:
            return None
        return self._adapters.get(name)

    def get_all(self) -> List[BaseAdapter]:
        return list(self._adapters.values())

    def auto_detect(self) -> Optional[BaseAdapter]:
        """
        First adapter whose detect_environment() is true.

        Detection is best-effort: any exception ends the scan with None.
        """
        try:
            for adapter in self._adapters.values():
                if adapter.detect_environment():
                    return adapter
            return None
        except Exception as e:
            logger.warning(f"Adapter auto-detection failed: {e}")
            return None

    def clear(self) -> None:
        self._adapters.clear()

    def has(self, name: str) -> bool:
        return name in self._adapters

    def unregister(self, name: str) -> bool:
        return self._adapters.pop(name, None) is not None

    def count(self) -> int:
        return len(self._adapters)

    def get_names(self) -> List[str]:
        return list(self._adapters)


adapter_registry = AdapterRegistry()
