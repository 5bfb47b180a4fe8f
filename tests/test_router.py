"""Tests for the FastAPI auth router."""

from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from starlette.middleware.sessions import SessionMiddleware

from oath_auth import (
    ClaimsProvider,
    ProtocolError,
    create_auth_router,
    require_any_role,
    require_roles,
)

from .conftest import AUTHORIZE_URL, USERINFO

ROLE_GROUPS = {"admin": {"authentik Admins"}, "support": {"support"}}
ROLE_INHERITS = {"admin": {"support"}}


class FakeProvider:
    """Stands in for Oath; records the codes it was asked to resolve."""

    def __init__(self, claims=None, error=None):
        self.claims = USERINFO if claims is None else claims
        self.error = error
        self.codes = []
        self.requested_scopes = None

    def url(self, *, scopes, state):
        self.requested_scopes = scopes
        return f"{AUTHORIZE_URL}?state={state}"

    async def user(self, code):
        self.codes.append(code)
        if self.error:
            raise self.error
        return self.claims


def build_app(provider):
    app = FastAPI()
    app.add_middleware(SessionMiddleware, secret_key="test-secret")
    app.include_router(
        create_auth_router(provider, ["openid", "profile"], ROLE_GROUPS, ROLE_INHERITS)
    )

    @app.get("/admin")
    async def admin_area(_=Depends(require_roles("admin"))):
        return {"ok": True}

    @app.get("/support")
    async def support_area(_=Depends(require_any_role("support", "billing"))):
        return {"ok": True}

    return app


def start_login(client):
    response = client.get("/login", follow_redirects=False)
    assert response.status_code == 307
    location = response.headers["location"]
    return location, parse_qs(urlsplit(location).query)["state"][0]


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def client(provider):
    return TestClient(build_app(provider))


class TestLoginFlow:
    """Test the login -> callback -> /me round trip"""

    def test_provider_protocol(self, provider, authentik):
        assert isinstance(provider, ClaimsProvider)
        assert isinstance(authentik, ClaimsProvider)

    def test_login_redirects_with_state(self, client, provider):
        location, state = start_login(client)

        assert location.startswith(AUTHORIZE_URL)
        assert len(state) == 32
        assert provider.requested_scopes == ["openid", "profile"]

    def test_callback_stores_user_and_roles(self, client, provider):
        _, state = start_login(client)

        response = client.get(
            "/auth/callback", params={"code": "abc", "state": state}, follow_redirects=False
        )

        assert response.status_code == 303
        assert response.headers["location"] == "/me"
        assert provider.codes == ["abc"]

        me = client.get("/me").json()
        assert me["user"] == {
            "sub": USERINFO["sub"],
            "name": USERINFO["name"],
            "preferred_username": USERINFO["preferred_username"],
            "email": USERINFO["email"],
        }
        assert me["roles"] == ["admin", "support"]

    def test_state_mismatch(self, client, provider):
        start_login(client)

        response = client.get("/auth/callback", params={"code": "abc", "state": "forged"})

        assert response.status_code == 400
        assert response.json() == {"error": "invalid state"}
        assert provider.codes == []

    def test_callback_without_login(self, client, provider):
        response = client.get("/auth/callback", params={"code": "abc", "state": "any"})

        assert response.status_code == 400
        assert provider.codes == []

    def test_state_is_single_use(self, client):
        _, state = start_login(client)
        client.get("/auth/callback", params={"code": "abc", "state": state}, follow_redirects=False)
        client.get("/logout", follow_redirects=False)

        response = client.get("/auth/callback", params={"code": "abc", "state": state})

        assert response.status_code == 400

    def test_provider_error_param(self, client):
        start_login(client)

        response = client.get(
            "/auth/callback", params={"error": "access_denied", "error_description": "nope"}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "access_denied"

    def test_missing_code(self, client):
        _, state = start_login(client)

        response = client.get("/auth/callback", params={"state": state})

        assert response.status_code == 400
        assert response.json() == {"error": "missing code"}

    def test_exchange_failure(self):
        client = TestClient(build_app(FakeProvider(error=ProtocolError("missing access_token"))))
        _, state = start_login(client)

        response = client.get("/auth/callback", params={"code": "abc", "state": state})

        assert response.status_code == 400
        assert response.json() == {"error": "missing access_token"}

    def test_me_requires_login(self, client):
        response = client.get("/me", follow_redirects=False)

        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_logout_clears_session(self, client):
        _, state = start_login(client)
        client.get("/auth/callback", params={"code": "abc", "state": state}, follow_redirects=False)

        client.get("/logout", follow_redirects=False)

        assert client.get("/me", follow_redirects=False).status_code == 307


class TestRoleDependencies:
    """Test route protection from session roles"""

    def login(self, client):
        _, state = start_login(client)
        client.get("/auth/callback", params={"code": "abc", "state": state}, follow_redirects=False)

    def test_unauthenticated(self, client):
        assert client.get("/admin").status_code == 401

    def test_allowed(self, client):
        self.login(client)

        assert client.get("/admin").json() == {"ok": True}
        assert client.get("/support").json() == {"ok": True}

    def test_forbidden(self):
        client = TestClient(build_app(FakeProvider(claims={"sub": "u2", "groups": ["support"]})))
        self.login(client)

        assert client.get("/support").status_code == 200
        response = client.get("/admin")
        assert response.status_code == 403
        assert response.json()["detail"] == "Forbidden (missing required roles)"
