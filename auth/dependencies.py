"""
auth/dependencies.py -- FastAPI Depends() helpers backed by UserFilesRealm.

A FastAPI host plugs the realm in by storing it on app.state.realm at startup
and protecting routes with these dependencies. Credentials arrive as HTTP
Basic; the username goes through the realm unchanged, so "*p.fogg" forces a
re-read of p.fogg's record before the password is checked.

try_get_current_principal() is the soft variant (returns None on failure).
get_current_principal() wraps it and raises HTTP 401 if unauthenticated.
require_role() builds a dependency that also raises HTTP 403 on a missing role.

Password check: plain constant-time equality against the record's credential.
Records store the credential as-is; there is nothing to hash here.

Layer rule: no direct imports from cache/ or core/ (they arrive via auth.adapters).
  auth/dependencies.py may import from fastapi (for HTTPException/Request)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import secrets
from typing import Callable

from fastapi import HTTPException, Request

from auth.adapters import UserFilesRealm
from auth.models import Principal

# Timing equalization for unknown usernames: always run one comparison so the
# response time does not reveal whether the username has a record.
_DUMMY_PASSWORD: str = secrets.token_hex(32)


def _passwords_match(presented: str, stored: str) -> bool:
    return hmac.compare_digest(presented.encode("utf-8"), stored.encode("utf-8"))


def _read_basic_credentials(request: Request) -> tuple[str, str] | None:
    """Return (username, password) from an Authorization: Basic header, or None."""
    scheme, _, encoded = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() != "basic" or not encoded:
        return None
    try:
        decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    username, sep, password = decoded.partition(":")
    if not sep:
        return None
    return username, password


def try_get_current_principal(request: Request) -> Principal | None:
    """Authenticate the request against the realm.

    Returns the Principal on success, None on any failure. Never raises --
    callers that need a hard 401 should use get_current_principal().
    """
    credentials = _read_basic_credentials(request)
    if credentials is None:
        return None
    username, password = credentials

    realm: UserFilesRealm = request.app.state.realm
    principal = realm.resolve(username)
    if principal is None:
        # Equalize timing -- do NOT return before comparing
        _passwords_match(password, _DUMMY_PASSWORD)
        return None
    if not _passwords_match(password, principal.password):
        return None
    return principal


def get_current_principal(request: Request) -> Principal:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Unknown user, malformed record and wrong password all produce the same
    response body.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(principal: Principal = Depends(get_current_principal)): ...
    """
    principal = try_get_current_principal(request)
    if principal is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": 'Basic realm="UserFilesRealm"'},
        )
    return principal


def require_role(role: str) -> Callable[[Request], Principal]:
    """Build a dependency that requires the given role.

    Raises HTTP 401 if unauthenticated, HTTP 403 if the principal lacks role.

    Use as a FastAPI dependency:
        @router.post("/admin-only")
        async def route(principal: Principal = Depends(require_role("admin"))): ...
    """

    def dependency(request: Request) -> Principal:
        principal = get_current_principal(request)
        if not principal.has_role(role):
            raise HTTPException(
                status_code=403,
                detail={"code": "forbidden", "message": f"Role '{role}' required."},
            )
        return principal

    return dependency
