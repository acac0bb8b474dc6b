"""
auth/adapters.py -- Host-facing realm facade and credential adaptation.

The host framework rarely wants our Principal as-is; it has its own
credential type. CredentialBuilder is the explicit seam for that: the host
supplies an object with build_credential(username, password, roles) and the
realm calls it after every successful resolution. Without one, the host
gets the resolved Principal itself.

Failure policy: a builder that raises must never abort the host's request.
The error is logged with its traceback and the lookup degrades to None,
which every caller already treats as "authentication denied".

build_realm() is the composition root. The host calls it once at startup
and keeps the returned UserFilesRealm (FastAPI: app.state.realm). The cache
lives inside that instance, never at module scope.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from auth.models import Principal
from auth.realm import PrincipalCache
from auth.store import UserRecordStore
from cache.store import PrincipalMap
from core.config import Settings, get_settings

logger = logging.getLogger("userrealm.realm")


class CredentialBuilder(Protocol):
    def build_credential(self, username: str, password: str, roles: tuple[str, ...]) -> Any: ...


class UserFilesRealm:
    """What the host talks to: principal lookup, password lookup, role checks.

    Every method goes through PrincipalCache.resolve(), so the forced-reload
    prefix works the same for a login as for an authorization check.
    """

    name = "UserFilesRealm"

    def __init__(self, cache: PrincipalCache, builder: Optional[CredentialBuilder] = None) -> None:
        self.cache = cache
        # None: the host takes our Principal as-is, email included.
        self.builder: Optional[CredentialBuilder] = builder

    def resolve(self, username: str) -> Optional[Principal]:
        return self.cache.resolve(username)

    def get_principal(self, username: str) -> Any:
        """Return the host credential for username, or None.

        None covers unknown users, malformed records, and builder failures
        alike -- the host cannot tell them apart, and neither can a client.
        """
        principal = self.cache.resolve(username)
        if principal is None:
            return None
        if self.builder is None:
            return principal
        try:
            return self.builder.build_credential(principal.username, principal.password, principal.roles)
        except Exception:
            logger.warning("Could not build host credential for %r", principal.username, exc_info=True)
            return None

    def get_password(self, username: str) -> Optional[str]:
        return self.cache.password(username)

    def has_role(self, username: str, role: str) -> bool:
        principal = self.cache.resolve(username)
        return principal is not None and principal.has_role(role)


def build_realm(settings: Optional[Settings] = None, builder: Optional[CredentialBuilder] = None) -> UserFilesRealm:
    """Wire store, map, cache and realm from Settings.

    Args:
        settings: Defaults to the get_settings() singleton.
        builder:  Host credential builder. None hands out the resolved Principal.
    """
    settings = settings if settings is not None else get_settings()
    store = UserRecordStore.from_settings(settings)
    cache = PrincipalCache(store, principals=PrincipalMap(), reload_marker=settings.reload_marker)
    logger.info("%s ready (users root: %s)", UserFilesRealm.name, store.users_root)
    return UserFilesRealm(cache, builder=builder)
