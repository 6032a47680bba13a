import asyncio
import logging
from datetime import datetime, timezone

import pytest

from contractguard.contracts.context import (
    AuthContext,
    RequestContext,
    Session,
    User,
    clear_session_provider,
    coerce_auth_context,
    create_request_context,
    get_auth_context_from_request,
    get_request_context,
    get_request_context_safe,
    get_session_provider,
    has_request_context,
    resolve_auth_context,
    set_session_provider,
    to_utc_datetime,
    with_request_context,
)
from contractguard.contracts.errors import ContractConfigurationError, ContractViolationError
from contractguard.contracts.wrapper import contract
from contractguard.conditions import auth


class FakeRequest:
    def __init__(self, headers=None, remote_addr="10.0.0.1"):
        self.headers = headers or {}
        self.remote_addr = remote_addr


class StaticAdapter:
    """Adapter double: returns fixed user/session and counts extractions."""
    name = "static"

    def __init__(self, user=None, session=None, error=None, handled=None):
        self.user = user
        self.session = session
        self.error = error
        self.handled = handled
        self.extractions = 0

    def extract_user(self, request):
        self.extractions += 1
        if self.error:
            raise self.error
        return self.user

    async def extract_session(self, request):
        return self.session

    def transform_user(self, user):
        return user

    def transform_session(self, session):
        return session

    def handle_error(self, error):
        return self.handled


# =============================================================================
# Data model
# =============================================================================

def test_to_utc_datetime_variants():
    assert to_utc_datetime(datetime(2030, 1, 1)) == datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert to_utc_datetime("2030-01-01T00:00:00Z") == datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert to_utc_datetime(1893456000) == datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert to_utc_datetime(1893456000000) == datetime(2030, 1, 1, tzinfo=timezone.utc)
    assert to_utc_datetime("garbage") is None
    assert to_utc_datetime(True) is None


def test_user_from_mapping_single_role_and_extra():
    user = User.from_mapping({"id": 5, "role": "editor", "email": "e@x.io", "team": "t1"})
    assert user.id == "5"
    assert user.roles == ("editor",)
    assert user.extra == {"team": "t1"}
    assert user.has_role("editor")


def test_session_from_mapping_accepts_camel_case():
    session = Session.from_mapping({"id": "s", "expiresAt": "2000-01-01T00:00:00Z"})
    assert session.expires == datetime(2000, 1, 1, tzinfo=timezone.utc)
    assert session.is_expired()


def test_coerce_rejects_other_types():
    with pytest.raises(TypeError):
        coerce_auth_context("user-1")


def test_auth_context_is_authenticated():
    assert not AuthContext().is_authenticated
    assert AuthContext(user=User(id="u")).is_authenticated


# =============================================================================
# Session provider
# =============================================================================

def test_no_provider_resolves_to_none():
    assert asyncio.run(resolve_auth_context()) is None


def test_provider_is_used_when_context_is_omitted():
    calls = []

    def provider():
        calls.append(1)
        return {"user": {"id": "u1", "roles": ["admin"]}, "session": {"id": "s", "expiresAt": "2999-01-01"}}

    set_session_provider(provider)

    @contract(requires=[auth("admin")])
    async def op(input, context=None):
        return context.user.id

    assert asyncio.run(op(None)) == "u1"
    assert calls == [1]


def test_explicit_context_skips_provider(make_context):
    def provider():
        raise AssertionError("provider should not be called")

    set_session_provider(provider)

    @contract(requires=[auth()])
    async def op(input, context=None):
        return "ok"

    assert asyncio.run(op(None, make_context())) == "ok"


def test_async_provider():
    async def provider():
        return AuthContext(user=User(id="async-user"))

    set_session_provider(provider)
    assert asyncio.run(resolve_auth_context()).user.id == "async-user"


def test_failing_provider_means_no_context(caplog):
    def provider():
        raise RuntimeError("session store down")

    set_session_provider(provider)

    @contract(requires=[auth()], layer="api")
    async def op(input, context=None):
        return "ok"

    with caplog.at_level(logging.WARNING, logger="contractguard.context"):
        with pytest.raises(ContractViolationError) as exc_info:
            asyncio.run(op(None))

    assert exc_info.value.type == "AUTHENTICATION_REQUIRED"
    assert any("session store down" in r.getMessage() for r in caplog.records)


def test_set_provider_requires_callable():
    with pytest.raises(ContractConfigurationError):
        set_session_provider("not callable")


def test_clear_provider():
    set_session_provider(lambda: None)
    clear_session_provider()
    assert get_session_provider() is None


# =============================================================================
# Request context
# =============================================================================

def test_create_request_context_metadata():
    request = FakeRequest(headers={
        "X-Forwarded-For": "203.0.113.5, 10.0.0.1",
        "User-Agent": "pytest",
        "X-Request-ID": "req-1",
    })
    ctx = create_request_context(StaticAdapter(), request, tenant="t1")

    assert ctx.metadata["ip_address"] == "203.0.113.5"
    assert ctx.metadata["user_agent"] == "pytest"
    assert ctx.metadata["request_id"] == "req-1"
    assert ctx.data == {"tenant": "t1"}


def test_ip_address_fallbacks():
    assert create_request_context(None, FakeRequest({"X-Real-IP": "198.51.100.2"})).metadata["ip_address"] == "198.51.100.2"
    assert create_request_context(None, FakeRequest()).metadata["ip_address"] == "10.0.0.1"


def test_get_request_context_raises_when_unset():
    assert not has_request_context()
    assert get_request_context_safe() is None
    with pytest.raises(RuntimeError):
        get_request_context()


def test_with_request_context_restores_previous():
    outer = RequestContext()
    inner = RequestContext()

    with with_request_context(outer):
        with with_request_context(inner):
            assert get_request_context() is inner
        assert get_request_context() is outer
    assert get_request_context_safe() is None


def test_request_contexts_are_isolated_between_tasks():
    async def handle(name):
        with with_request_context(RequestContext(data={"name": name})):
            await asyncio.sleep(0)
            return get_request_context().data["name"]

    async def main():
        return await asyncio.gather(handle("a"), handle("b"), handle("c"))

    assert asyncio.run(main()) == ["a", "b", "c"]


def test_auth_context_from_request_extracts_once():
    adapter = StaticAdapter(
        user={"id": "u1", "roles": ["user"]},
        session={"id": "s1", "expiresAt": "2999-01-01T00:00:00Z"},
    )
    ctx = create_request_context(adapter, FakeRequest())

    async def main():
        with with_request_context(ctx):
            first = await get_auth_context_from_request()
            second = await get_auth_context_from_request()
        return first, second

    first, second = asyncio.run(main())
    assert first.user.id == "u1"
    assert second.session.id == "s1"
    assert adapter.extractions == 1
    assert ctx.extracted


def test_auth_context_from_request_without_context():
    auth_context = asyncio.run(get_auth_context_from_request())
    assert auth_context == AuthContext()


def test_extraction_error_is_swallowed_by_default():
    adapter = StaticAdapter(error=RuntimeError("bad cookie"))
    ctx = create_request_context(adapter, FakeRequest())

    async def main():
        with with_request_context(ctx):
            return await get_auth_context_from_request()

    assert asyncio.run(main()).user is None


def test_extraction_error_raised_when_adapter_returns_it():
    adapter = StaticAdapter(error=RuntimeError("bad cookie"), handled=PermissionError("denied"))
    ctx = create_request_context(adapter, FakeRequest())

    async def main():
        with with_request_context(ctx):
            return await get_auth_context_from_request()

    with pytest.raises(PermissionError):
        asyncio.run(main())
