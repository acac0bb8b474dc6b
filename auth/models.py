"""
auth/models.py -- Domain dataclasses for resolved identities.

Pattern: Data class (pure data container, near-zero logic). Stores and the
realm do the work; this module owns the domain shape only.

Layer rule: no imports from cache/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Principal:
    """A resolved identity handed to the host framework.

    Frozen: cache entries are replaced wholesale, never mutated in place, so
    a Principal held by one request cannot change under it when another
    request force-reloads the same user.

    password is the record's credential exactly as written. Nothing in this
    package hashes or normalizes it; the host compares it.

    roles keeps the record's document order and any duplicates. Callers doing
    authorization should use has_role() rather than relying on position.
    """

    username: str
    password: str
    roles: tuple[str, ...] = ()
    email: str | None = None  # carried through from the record when present

    def has_role(self, role: str) -> bool:
        return role in self.roles
