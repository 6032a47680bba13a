import asyncio
from datetime import timedelta

import pytest
from flask import Flask, g
from pydantic import BaseModel

from contractguard.adapters import FlaskAdapter, adapter_registry
from contractguard.conditions import auth, owns, validates
from contractguard.contracts.context import get_request_context
from contractguard.contracts.wrapper import contract
from contractguard.integrations import as_action, contract_view, init_app
from contractguard.utils.tokens import bearer_token, decode_token, generate_token


class CreateNote(BaseModel):
    title: str


@contract(requires=[auth("user"), validates(CreateNote)], layer="api")
async def create_note(input, context=None):
    return {"id": "n1", "title": input.title, "owner": context.user.id}


@contract(requires=[auth()], layer="presentation")
async def dashboard(input, context=None):
    return {"user": context.user.id}


@contract(requires=[auth(), owns("noteId")], layer="api")
async def get_note(input, context=None):
    return {"id": input["noteId"]}


@contract(layer="api")
async def whoami(input, context=None):
    ctx = get_request_context()
    return {"requestId": ctx.metadata["request_id"], "user": getattr(context.user, "id", None)}


def _build_test_app(catch_all_errors=False):
    app = Flask(__name__)
    app.config["TESTING"] = True
    init_app(
        app,
        config={"resource_lookup": lambda rid: {"id": rid, "userId": "owner-1"}},
        catch_all_errors=catch_all_errors,
    )

    app.add_url_rule("/api/notes", view_func=contract_view(create_note), methods=["POST"])
    app.add_url_rule("/dashboard", view_func=contract_view(dashboard))
    app.add_url_rule("/api/notes/<noteId>", view_func=contract_view(get_note))
    app.add_url_rule("/api/whoami", view_func=contract_view(whoami))

    @app.route("/api/boom")
    def boom():
        raise RuntimeError("kaboom")

    return app


def _headers(user_id="u1", roles=("user",), expires_in=timedelta(hours=1)):
    token = generate_token(user_id, email=f"{user_id}@example.com", roles=roles, expires_in=expires_in)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client():
    return _build_test_app().test_client()


def test_token_round_trip():
    token = generate_token("u1", roles=["admin"], session_id="s1")
    claims = decode_token(token)
    assert claims["user_id"] == "u1"
    assert claims["roles"] == ["admin"]
    assert claims["sid"] == "s1"
    assert decode_token(token + "tampered") is None
    assert bearer_token("Basic abc") is None
    assert bearer_token(f"Bearer {token}") == token


def test_init_app_registers_adapter():
    app = _build_test_app()
    assert isinstance(app.extensions["contractguard"], FlaskAdapter)
    assert adapter_registry.has("flask")


def test_authenticated_request_succeeds(client):
    response = client.post("/api/notes", json={"title": "Groceries"}, headers=_headers())
    assert response.status_code == 200
    assert response.get_json() == {"id": "n1", "title": "Groceries", "owner": "u1"}
    assert response.headers["X-Request-ID"]


def test_missing_token_is_401_envelope(client):
    response = client.post("/api/notes", json={"title": "x"}, headers={"X-Request-ID": "req-42"})

    assert response.status_code == 401
    error = response.get_json()["error"]
    assert error["code"] == "AUTHENTICATION_REQUIRED"
    assert error["message"] == "User must be logged in"
    assert error["category"] == "AUTHENTICATION"
    assert error["layer"] == "api"
    assert error["requestId"] == "req-42"


def test_expired_token_is_session_expired(client):
    response = client.post("/api/notes", json={"title": "x"}, headers=_headers(expires_in=timedelta(seconds=-5)))
    assert response.status_code == 401
    assert response.get_json()["error"]["code"] == "SESSION_EXPIRED"


def test_invalid_body_is_400_with_issues(client):
    response = client.post("/api/notes", json={"title": 123}, headers=_headers())
    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["code"] == "VALIDATION_FAILED"
    assert error["details"]["issues"][0]["field"] == "title"


def test_presentation_layer_redirects_to_login(client):
    response = client.get("/dashboard")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/login")


def test_ownership_from_url_params(client):
    assert client.get("/api/notes/n7", headers=_headers(user_id="owner-1")).status_code == 200

    response = client.get("/api/notes/n7", headers=_headers(user_id="intruder"))
    assert response.status_code == 403
    assert response.get_json()["error"]["code"] == "OWNERSHIP_DENIED"


def test_admin_token_bypasses_ownership(client):
    response = client.get("/api/notes/n7", headers=_headers(user_id="ops", roles=("admin",)))
    assert response.status_code == 200


def test_request_context_is_bound(client):
    response = client.get("/api/whoami", headers={"X-Request-ID": "trace-1"})
    assert response.get_json() == {"requestId": "trace-1", "user": None}


def test_g_current_user_takes_precedence():
    app = _build_test_app()

    @app.before_request
    def login():
        g.current_user = {"id": "from-g", "roles": ["user"]}
        g.current_session = {"id": "s", "expiresAt": "2999-01-01T00:00:00Z"}

    response = app.test_client().post("/api/notes", json={"title": "t"})
    assert response.get_json()["owner"] == "from-g"


def test_unhandled_errors_propagate_by_default(client):
    with pytest.raises(RuntimeError, match="kaboom"):
        client.get("/api/boom")


def test_catch_all_errors_use_generic_envelope(caplog):
    client = _build_test_app(catch_all_errors=True).test_client()
    with caplog.at_level("ERROR", logger="api.middleware.error"):
        response = client.get("/api/boom")

    assert any(getattr(r, "event", None) == "unhandled_error" for r in caplog.records)
    assert response.status_code == 500
    assert response.get_json()["error"] == {
        "code": "INTERNAL_ERROR",
        "message": "An unexpected error occurred",
        "requestId": response.headers["X-Request-ID"],
    }


def test_not_found_envelope(client):
    response = client.get("/api/missing")
    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "NOT_FOUND"


# =============================================================================
# Server-action wrapper
# =============================================================================

def test_action_success(make_context):
    action = as_action(create_note)
    assert asyncio.run(action({"title": "t"}, make_context())) == {
        "success": True,
        "data": {"id": "n1", "title": "t", "owner": "u1"},
    }


def test_action_violation_body(make_context):
    action = as_action(create_note)
    result = asyncio.run(action({"title": "t"}, make_context(roles=())))

    assert result["success"] is False
    assert result["status"] == 403
    assert result["error"]["code"] == "INSUFFICIENT_ROLE"
    assert "redirect" not in result


def test_action_redirect():
    result = asyncio.run(as_action(dashboard)(None, None))
    assert result["success"] is False
    assert result["status"] == 302
    assert result["redirect"] == "/login"


def test_action_unexpected_error(caplog):
    async def broken(input, context=None):
        raise RuntimeError("db down")

    result = asyncio.run(as_action(broken)(None))
    assert result == {"success": False, "error": "An unexpected error occurred."}
    assert "db down" in caplog.text
