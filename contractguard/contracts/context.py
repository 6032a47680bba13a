"""
Authentication context and its resolution.

Two layers:
- Session provider: one process-wide slot holding a zero-arg callable that
  returns the current AuthContext. The pipeline consults it only when the
  caller passes no context.
- Request context: per-request state (adapter, raw request, cached user and
  session, metadata) held in a ContextVar so concurrent requests and tasks
  never see each other's values.

Usage:
    set_session_provider(get_auth_context_from_request)

    ctx = create_request_context(adapter, request)
    with with_request_context(ctx):
        result = await create_document(payload)
"""

import inspect
import logging
import threading
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from dateutil import parser as date_parser

from ..config import get_config
from .errors import ContractConfigurationError

logger = logging.getLogger('contractguard.context')

# Epoch numbers above this are milliseconds, below are seconds
_EPOCH_MS_THRESHOLD = 10 ** 11


def to_utc_datetime(value: Any) -> Optional[datetime]:
    """
    Interpret an expiry value as an aware UTC datetime.

    Accepts datetimes (naive = UTC), ISO/free-form strings (python-dateutil)
    and epoch numbers (seconds, or milliseconds when large). Returns None
    for anything that cannot be interpreted.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        seconds = value / 1000 if abs(value) >= _EPOCH_MS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        if not value.strip():
            return None
        try:
            dt = date_parser.parse(value)
        except (ValueError, OverflowError):
            return None
    else:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class User:
    id: str
    roles: Tuple[str, ...] = ()
    email: Optional[str] = None
    name: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "User":
        known = {'id', 'roles', 'role', 'email', 'name'}
        roles = data.get('roles')
        if roles is None and data.get('role') is not None:
            roles = [data['role']]
        if isinstance(roles, str):
            roles = [roles]
        user_id = data.get('id')
        return cls(
            id=str(user_id) if user_id is not None else None,
            roles=tuple(roles or ()),
            email=data.get('email'),
            name=data.get('name'),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass(frozen=True)
class Session:
    id: Optional[str] = None
    expires_at: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Session":
        known = {'id', 'expires_at', 'expiresAt'}
        expires_at = data.get('expires_at', data.get('expiresAt'))
        session_id = data.get('id')
        return cls(
            id=str(session_id) if session_id is not None else None,
            expires_at=expires_at,
            extra={k: v for k, v in data.items() if k not in known},
        )

    @property
    def expires(self) -> Optional[datetime]:
        """Expiry as aware UTC datetime, or None when absent/invalid."""
        return to_utc_datetime(self.expires_at)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True when expiry is absent, invalid, or at/before now."""
        expires = self.expires
        if expires is None:
            return True
        return expires <= (now or datetime.now(timezone.utc))


@dataclass(frozen=True)
class AuthContext:
    """Who is calling. Immutable for the duration of one pipeline run."""
    user: Optional[User] = None
    session: Optional[Session] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None and self.user.id is not None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "AuthContext":
        """Build from the canonical mapping shape {user: {...}, session: {...}}."""
        user = data.get('user')
        session = data.get('session')
        if isinstance(user, Mapping):
            user = User.from_mapping(user)
        if isinstance(session, Mapping):
            session = Session.from_mapping(session)
        return cls(
            user=user,
            session=session,
            extra={k: v for k, v in data.items() if k not in ('user', 'session')},
        )


def coerce_auth_context(value: Any) -> Optional[AuthContext]:
    """AuthContext, mapping or None -> AuthContext or None."""
    if value is None or isinstance(value, AuthContext):
        return value
    if isinstance(value, Mapping):
        return AuthContext.from_mapping(value)
    raise TypeError(
        f"Auth context must be an AuthContext, a mapping or None, got {type(value).__name__}"
    )


# =============================================================================
# SESSION PROVIDER (process-wide)
# =============================================================================

_provider_lock = threading.Lock()


def set_session_provider(provider: Optional[Callable[[], Any]]) -> None:
    """
    Register the fallback source of the current AuthContext.

    The provider may be sync or async and may return an AuthContext, a
    mapping or None. Meant to be set once at startup (or per test);
    concurrent writers are not supported.
    """
    if provider is not None and not callable(provider):
        raise ContractConfigurationError("Session provider must be callable")
    with _provider_lock:
        get_config().session_provider = provider
    logger.debug(f"Session provider set: {getattr(provider, '__name__', provider)}")


def get_session_provider() -> Optional[Callable[[], Any]]:
    return get_config().session_provider


def clear_session_provider() -> None:
    set_session_provider(None)


async def resolve_auth_context() -> Optional[AuthContext]:
    """
    Ask the registered provider for the current context.

    Returns None when no provider is registered, or when the provider fails
    (the failure is logged, never raised).
    """
    provider = get_config().session_provider
    if provider is None:
        return None

    try:
        result = provider()
        if inspect.isawaitable(result):
            result = await result
        return coerce_auth_context(result)
    except Exception as e:
        logger.warning(
            f"Session provider failed, continuing without auth context: {e}",
            extra={
                "event": "session_provider_failed",
                "error_type": type(e).__name__,
            },
        )
        return None


# =============================================================================
# REQUEST CONTEXT (per request / task)
# =============================================================================

@dataclass
class RequestContext:
    adapter: Any = None
    request: Any = None
    response: Any = None
    user: Optional[User] = None
    session: Optional[Session] = None
    extracted: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
    data: Dict[str, Any] = field(default_factory=dict)


_request_context: ContextVar[Optional[RequestContext]] = ContextVar(
    'contractguard_request_context', default=None
)


def _header(request: Any, name: str) -> Optional[str]:
    headers = getattr(request, 'headers', None)
    if headers is None and isinstance(request, Mapping):
        headers = request.get('headers')
    if headers is None:
        return None
    try:
        return headers.get(name)
    except AttributeError:
        return None


def _extract_ip_address(request: Any) -> Optional[str]:
    forwarded = _header(request, 'X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    real_ip = _header(request, 'X-Real-IP')
    if real_ip:
        return real_ip
    return getattr(request, 'remote_addr', None)


def create_request_context(
    adapter: Any,
    request: Any,
    response: Any = None,
    **data,
) -> RequestContext:
    """Build a RequestContext with request metadata filled in."""
    request_id = _header(request, 'X-Request-ID') or str(uuid.uuid4())
    ctx = RequestContext(
        adapter=adapter,
        request=request,
        response=response,
        metadata={
            'start_time': time.time(),
            'request_id': request_id,
            'user_agent': _header(request, 'User-Agent'),
            'ip_address': _extract_ip_address(request),
        },
        data=data,
    )
    logger.debug(
        f"Created request context {request_id} (adapter={getattr(adapter, 'name', None)})"
    )
    return ctx


def set_request_context(ctx: RequestContext):
    """Bind ctx to the current task/thread. Returns the reset token."""
    return _request_context.set(ctx)


def reset_request_context(token) -> None:
    """Undo a set_request_context() call."""
    _request_context.reset(token)


def get_request_context() -> RequestContext:
    ctx = _request_context.get()
    if ctx is None:
        raise RuntimeError(
            "No request context available. Use set_request_context() or with_request_context()."
        )
    return ctx


def get_request_context_safe() -> Optional[RequestContext]:
    return _request_context.get()


def has_request_context() -> bool:
    return _request_context.get() is not None


def clear_request_context() -> None:
    _request_context.set(None)


@contextmanager
def with_request_context(ctx: RequestContext):
    """Bind ctx for the duration of the with-block, then restore the previous one."""
    token = _request_context.set(ctx)
    try:
        yield ctx
    finally:
        _request_context.reset(token)


async def _maybe_await(value):
    if inspect.isawaitable(value):
        return await value
    return value


async def get_auth_context_from_request() -> Optional[AuthContext]:
    """
    Session provider backed by the current request context's adapter.

    Extracts user and session once per request and caches them on the
    RequestContext. Extraction errors go through adapter.handle_error: a
    returned exception is raised, otherwise an empty context is returned.
    """
    ctx = get_request_context_safe()
    if ctx is None or ctx.adapter is None or ctx.request is None:
        logger.warning("No adapter or request in context, returning empty auth context")
        return AuthContext()

    if ctx.extracted:
        return AuthContext(user=ctx.user, session=ctx.session)

    adapter = ctx.adapter
    try:
        raw_user = await _maybe_await(adapter.extract_user(ctx.request))
        raw_session = await _maybe_await(adapter.extract_session(ctx.request))

        user_data = adapter.transform_user(raw_user) if raw_user else None
        session_data = adapter.transform_session(raw_session) if raw_session else None

        auth_context = coerce_auth_context({'user': user_data, 'session': session_data})
    except Exception as e:
        logger.error(
            f"Error extracting auth context: {e}",
            extra={"event": "auth_context_extraction_failed", "adapter": getattr(adapter, 'name', None)},
        )
        handled = adapter.handle_error(e)
        if handled is not None:
            raise handled
        return AuthContext()

    ctx.user = auth_context.user
    ctx.session = auth_context.session
    ctx.extracted = True
    logger.debug(
        f"Auth context extracted (user={getattr(ctx.user, 'id', None)}, "
        f"session={getattr(ctx.session, 'id', None)})"
    )
    return auth_context
