"""
auth/realm.py -- Cache-first principal resolution with forced reload.

PrincipalCache is the single point of contact for the host. Every login and
every authorization check goes through resolve():

  1. Forced reload: a username starting with the reload marker ("*p.fogg")
     re-reads the record for the stripped name. Success overwrites the cache
     entry. Failure leaves any existing entry alone and the call returns
     None -- a reload that cannot see a valid record does not authenticate
     against the stale one. Later plain lookups still see the old entry.
  2. Cache lookup for the effective (stripped) name. This runs even right
     after step 1 -- it is also the only path that serves a plain name
     from cache.
  3. Storage fallback on a miss; a valid result is written back.

This lets an operator reset a password by editing user.xml and logging in
once as "*username", without restarting the host.

Locking: the map's lock covers only get/set. store.load() runs outside it so
a slow disk read for one user never blocks logins for another. Two threads
missing on the same user may both read the record; the last set() wins.

Layer rule: may import from cache/ and core/. Must not import fastapi.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.models import Principal
from auth.store import UserRecordStore
from cache.store import PrincipalMap, PrincipalMapping

logger = logging.getLogger("userrealm.realm")

DEFAULT_RELOAD_MARKER = "*"


class PrincipalCache:
    """Resolves usernames to Principals, reading storage only on a miss.

    Usage:
        cache = PrincipalCache(UserRecordStore("users"))
        cache.resolve("p.fogg")     # from disk, then cached
        cache.resolve("p.fogg")     # from cache
        cache.resolve("*p.fogg")    # re-read from disk, cache replaced
    """

    def __init__(
        self,
        store: UserRecordStore,
        principals: Optional[PrincipalMapping] = None,
        reload_marker: str = DEFAULT_RELOAD_MARKER,
    ) -> None:
        if len(reload_marker) != 1:
            raise ValueError("reload_marker must be exactly one character")
        self.store = store
        self.principals: PrincipalMapping = principals if principals is not None else PrincipalMap()
        self.reload_marker = reload_marker

    def resolve(self, requested_name: str) -> Optional[Principal]:
        """Return the Principal for requested_name, or None if there is none.

        Parse failures surface here as None; the store has already logged them.
        """
        username = requested_name
        if requested_name.startswith(self.reload_marker):
            username = requested_name[1:]
            reloaded = self.store.load(username)
            if reloaded is None:
                logger.debug("Forced reload of %r found no valid record; cache left as is", username)
                return None
            self.principals.set(username, reloaded)
            logger.info("Reloaded principal %r from storage", username)

        principal = self.principals.get(username)
        if principal is not None:
            return principal

        principal = self.store.load(username)
        if principal is not None:
            self.principals.set(username, principal)
        return principal

    def password(self, username: str) -> Optional[str]:
        """Return the stored password for username, or None for an unknown user."""
        principal = self.resolve(username)
        return principal.password if principal is not None else None
