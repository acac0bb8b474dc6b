"""
cache/store.py -- In-memory, lock-guarded map of resolved principals.

Holds every Principal the realm has resolved, keyed by username. Shared by
all request threads, so every read and write goes through one lock.

There is no TTL and no removal: entries live until process restart or until
a forced reload replaces them. The realm owns one instance; nothing here is
module-global.

Usage:
    principals = PrincipalMap()
    principals.get("p.fogg")            # Principal or None
    principals.set("p.fogg", principal)
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from auth.models import Principal


class PrincipalMapping(Protocol):
    """The read/insert surface PrincipalCache needs from its backing map.

    Any implementation must make get() and set() safe to call concurrently.
    A sharded or lock-free map can stand in for PrincipalMap without changing
    the lookup protocol.
    """

    def get(self, username: str) -> Optional[Principal]: ...

    def set(self, username: str, principal: Principal) -> None: ...


class PrincipalMap:
    def __init__(self) -> None:
        self._entries: dict[str, Principal] = {}
        self._lock = threading.Lock()

    def get(self, username: str) -> Optional[Principal]:
        """Return the cached Principal for username, or None."""
        with self._lock:
            return self._entries.get(username)

    def set(self, username: str, principal: Principal) -> None:
        """Store principal under username, replacing any existing entry."""
        with self._lock:
            self._entries[username] = principal

    def usernames(self) -> list[str]:
        """Return a sorted snapshot of the cached usernames."""
        with self._lock:
            return sorted(self._entries)

    def __contains__(self, username: object) -> bool:
        with self._lock:
            return username in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
