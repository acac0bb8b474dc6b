"""
tests/conftest.py -- Shared test fixtures for realm tests.

This module provides:
  - users_root: an empty users directory under pytest's tmp_path
  - write_user / write_raw_record: factories that drop user.xml records into it
  - store / cache: a UserRecordStore and PrincipalCache over that directory

Every test gets its own tmp_path, so records and cache state never leak
between tests.
"""

from __future__ import annotations

from collections.abc import Callable, Generator, Iterable
from pathlib import Path

import pytest

from auth.realm import PrincipalCache
from auth.store import UserRecordStore
from core.config import get_settings


def render_user_record(
    username: str,
    password: str = "password",
    roles: Iterable[str] = ("user",),
    email: str | None = None,
) -> str:
    """Build a user.xml document in the on-disk layout."""
    role_lines = "".join(f"    <name>{role}</name>\n" for role in roles)
    email_line = f"  <email>{email}</email>\n" if email is not None else ""
    return (
        "<user>\n"
        f"  <name>{username}</name>\n"
        "  <roles>\n"
        f"{role_lines}"
        "  </roles>\n"
        f"  <password>{password}</password>\n"
        f"{email_line}"
        "</user>\n"
    )


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None, None, None]:
    """Drop the Settings singleton so env changes in one test never leak into another."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def users_root(tmp_path: Path) -> Path:
    root = tmp_path / "users"
    root.mkdir()
    return root


@pytest.fixture
def write_raw_record(users_root: Path) -> Callable[[str, str], Path]:
    """Return a function that writes arbitrary content as a user's record."""

    def _write(username: str, content: str, filename: str = "user.xml") -> Path:
        user_dir = users_root / username
        user_dir.mkdir(parents=True, exist_ok=True)
        path = user_dir / filename
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_user(write_raw_record) -> Callable[..., Path]:
    """Return a function that writes a well-formed record and returns its path.

    Calling it again for the same username overwrites the record, which is how
    tests simulate an operator editing user.xml on a live system.
    """

    def _write(
        username: str,
        password: str = "password",
        roles: Iterable[str] = ("user",),
        email: str | None = None,
    ) -> Path:
        return write_raw_record(username, render_user_record(username, password, roles, email))

    return _write


@pytest.fixture
def store(users_root: Path) -> UserRecordStore:
    return UserRecordStore(users_root)


@pytest.fixture
def cache(store: UserRecordStore) -> PrincipalCache:
    return PrincipalCache(store)
