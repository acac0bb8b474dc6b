"""
tests/test_dependencies.py -- Integration tests for auth/dependencies.py.

A small FastAPI app with the realm on app.state is driven through
TestClient, so the Basic-auth parsing, realm lookup and HTTPException
mapping all run through the real ASGI stack.

Coverage:
  - Valid credentials -> 200 with the principal
  - Wrong password and unknown user -> identical 401 with WWW-Authenticate
  - Missing or garbled Authorization header -> 401
  - require_role() -> 403 without the role, 200 with it
  - "*username" login forces a re-read, so an edited password works at once
"""

import base64

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from auth.adapters import build_realm
from auth.dependencies import get_current_principal, require_role, try_get_current_principal
from auth.models import Principal
from core.config import Settings


@pytest.fixture
def client(users_root, write_user):
    write_user("p.fogg", password="password", roles=["user"])
    write_user("admin", password="s3cret", roles=["user", "admin"])

    app = FastAPI()
    app.state.realm = build_realm(Settings(users_root=str(users_root)))

    @app.get("/me")
    def me(principal: Principal = Depends(get_current_principal)):
        return {"username": principal.username, "roles": list(principal.roles)}

    @app.get("/maybe")
    def maybe(principal=Depends(try_get_current_principal)):
        return {"username": principal.username if principal else None}

    @app.get("/admin")
    def admin_only(principal: Principal = Depends(require_role("admin"))):
        return {"username": principal.username}

    with TestClient(app) as c:
        yield c


class TestAuthentication:
    def test_valid_credentials(self, client):
        resp = client.get("/me", auth=("p.fogg", "password"))
        assert resp.status_code == 200
        assert resp.json() == {"username": "p.fogg", "roles": ["user"]}

    def test_wrong_password_is_401(self, client):
        resp = client.get("/me", auth=("p.fogg", "wrong"))
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"].startswith("Basic")
        assert resp.json()["detail"]["code"] == "unauthorized"

    def test_unknown_user_looks_like_wrong_password(self, client):
        unknown = client.get("/me", auth=("nobody", "password"))
        wrong = client.get("/me", auth=("p.fogg", "wrong"))
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()

    def test_malformed_record_looks_like_wrong_password(self, client, write_raw_record):
        write_raw_record("broken", "<user><password>password</password></user>")
        resp = client.get("/me", auth=("broken", "password"))
        assert resp.status_code == 401

    def test_missing_header_is_401(self, client):
        assert client.get("/me").status_code == 401

    @pytest.mark.parametrize(
        "header",
        [
            "Bearer abc.def.ghi",
            "Basic",
            "Basic !!!not-base64!!!",
            "Basic " + base64.b64encode(b"no-colon-here").decode(),
        ],
    )
    def test_garbled_header_is_401(self, client, header):
        assert client.get("/me", headers={"Authorization": header}).status_code == 401

    def test_overlong_username_is_401(self, client):
        """Filesystem errors from an oversized name must not surface as a 500."""
        resp = client.get("/me", auth=("a" * 300, "password"))
        assert resp.status_code == 401
        assert client.get("/me", auth=("*" + "a" * 300, "password")).status_code == 401

    def test_password_may_contain_colons(self, client, write_user):
        write_user("colon.user", password="a:b:c")
        assert client.get("/me", auth=("colon.user", "a:b:c")).status_code == 200

    def test_soft_dependency_returns_none(self, client):
        assert client.get("/maybe").json() == {"username": None}
        assert client.get("/maybe", auth=("p.fogg", "password")).json() == {"username": "p.fogg"}


class TestRoles:
    def test_missing_role_is_403(self, client):
        resp = client.get("/admin", auth=("p.fogg", "password"))
        assert resp.status_code == 403
        assert resp.json()["detail"]["code"] == "forbidden"

    def test_role_present_is_200(self, client):
        resp = client.get("/admin", auth=("admin", "s3cret"))
        assert resp.status_code == 200

    def test_unauthenticated_is_401_not_403(self, client):
        assert client.get("/admin").status_code == 401


class TestForcedReloadLogin:
    def test_edited_password_needs_forced_reload(self, client, write_user):
        assert client.get("/me", auth=("p.fogg", "password")).status_code == 200
        write_user("p.fogg", password="newpass", roles=["user"])

        # Cached value still wins for a plain login
        assert client.get("/me", auth=("p.fogg", "newpass")).status_code == 401

        resp = client.get("/me", auth=("*p.fogg", "newpass"))
        assert resp.status_code == 200
        assert resp.json()["username"] == "p.fogg"

        assert client.get("/me", auth=("p.fogg", "newpass")).status_code == 200
        assert client.get("/me", auth=("p.fogg", "password")).status_code == 401
