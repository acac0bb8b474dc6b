"""
auth/store.py -- Read-only persistence layer for per-user record files.

Pattern: Repository + Data Mapper. UserRecordStore is the repository;
parse_user_record() is the mapper from an XML record to a Principal.
The realm never touches the filesystem directly.

Layout on disk (one directory per user, one record per directory):

    <users_root>/p.fogg/user.xml

    <user>
      <name>p.fogg</name>
      <roles>
        <name>user</name>
      </roles>
      <password>password</password>
      <email>p.fogg@example.org</email>
    </user>

Record contract:
  Exactly one <password> and exactly one <roles> under the root <user>.
  A user with no roles has an empty <roles/>; a missing <roles> is malformed
  and the lookup fails closed. <name> is informational (the requested
  username is authoritative) and <email> is optional.

Concurrency:
  No parser state is shared between calls. ElementTree.parse() builds a fresh
  expat parser on every call, so concurrent loads from request threads are
  independent. The store itself holds only immutable configuration.

Security:
  Usernames come straight from a login form. Anything that is not a single
  path component ("", ".", "..", or containing a separator or NUL) is
  treated as an unknown user before any path is built, so a crafted username
  cannot read a record outside the users root.

Layer rule: no imports from cache/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import IO, TYPE_CHECKING, Union

from auth.models import Principal

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("userrealm.store")

_DEFAULT_RECORD_FILENAME = "user.xml"

_FORBIDDEN_USERNAME_CHARS = ("/", "\\", "\x00")


class RecordParseError(ValueError):
    """A record exists and is readable but does not have the expected shape."""


# ---------------------------------------------------------------------------
# Record parsing (pure -- no filesystem checks, no logging)
# ---------------------------------------------------------------------------


def _text_content(element: ET.Element) -> str:
    # Concatenated text of the element and its descendants, untrimmed.
    return "".join(element.itertext())


def _single_child(parent: ET.Element, tag: str) -> ET.Element:
    matches = parent.findall(tag)
    if not matches:
        raise RecordParseError(f"<{parent.tag}> has no <{tag}> element")
    if len(matches) > 1:
        raise RecordParseError(f"<{parent.tag}> has {len(matches)} <{tag}> elements, expected one")
    return matches[0]


def parse_user_record(source: Union[str, os.PathLike, IO[bytes]], username: str) -> Principal:
    """Parse one user record into a Principal.

    Args:
        source:   Path to the record, or an open binary file object.
        username: The username the record was looked up under. Used as the
                  Principal's username regardless of the record's <name>.

    Raises RecordParseError for malformed XML or a record missing its single
    <password> or <roles> element. OSError from opening a path propagates to
    the caller unchanged.
    """
    try:
        tree = ET.parse(source)
    except ET.ParseError as e:
        raise RecordParseError(f"malformed XML: {e}") from e

    user = tree.getroot()
    if user.tag != "user":
        raise RecordParseError(f"root element is <{user.tag}>, expected <user>")

    password = _text_content(_single_child(user, "password"))
    roles_element = _single_child(user, "roles")
    roles = tuple(_text_content(role) for role in roles_element.findall("name"))

    email_element = user.find("email")
    email = _text_content(email_element) if email_element is not None else None

    return Principal(username=username, password=password, roles=roles, email=email)


# ---------------------------------------------------------------------------
# Filesystem helpers
# ---------------------------------------------------------------------------


# pathlib's is_dir()/is_file() swallow only a few errnos. ENAMETOOLONG, EACCES
# on a parent and the like still raise, and count as "not readable" here.


def _is_readable_dir(path: Path) -> bool:
    try:
        return path.is_dir() and os.access(path, os.R_OK | os.X_OK)
    except OSError:
        return False


def _is_readable_file(path: Path) -> bool:
    try:
        return path.is_file() and os.access(path, os.R_OK)
    except OSError:
        return False


def is_valid_username(username: str) -> bool:
    """Return True if username can name exactly one directory under the users root."""
    if not username or username in (".", ".."):
        return False
    return not any(ch in username for ch in _FORBIDDEN_USERNAME_CHARS)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserRecordStore:
    """Repository that turns a username into a Principal by reading one record.

    Usage:
        store = UserRecordStore("users", base_dir="/srv/realm")
        principal = store.load("p.fogg")   # Principal or None
    """

    def __init__(
        self,
        users_root: Union[str, os.PathLike],
        base_dir: Union[str, os.PathLike, None] = None,
        record_filename: str = _DEFAULT_RECORD_FILENAME,
    ) -> None:
        self.users_root = Path(users_root)
        self.base_dir = Path(base_dir) if base_dir else None
        self.record_filename = record_filename

    @classmethod
    def from_settings(cls, settings: Settings) -> UserRecordStore:
        return cls(
            settings.users_root,
            base_dir=settings.users_base_dir or None,
            record_filename=settings.record_filename,
        )

    def resolve_root(self) -> Path:
        """Return the directory that holds the per-user subdirectories.

        The configured root is used as given when it is a readable directory.
        Otherwise it is taken as relative to base_dir. Evaluated on every call
        so a root created after startup is picked up on the next lookup.
        """
        if _is_readable_dir(self.users_root) or self.base_dir is None:
            return self.users_root
        return self.base_dir / self.users_root

    def record_path(self, username: str) -> Path:
        return self.resolve_root() / username / self.record_filename

    def load(self, username: str) -> Principal | None:
        """Read and parse the record for username.

        Returns None when the user has no readable record (logged at DEBUG --
        an unknown username is a normal outcome) or when the record is
        malformed (logged at WARNING with the resolved path). Never raises.
        """
        if not is_valid_username(username):
            logger.debug("Rejected username %r -- not a single path component", username)
            return None

        path = self.record_path(username)
        if not _is_readable_file(path):
            logger.debug("No readable record for %r at %s", username, path)
            return None

        try:
            return parse_user_record(path, username)
        except (RecordParseError, OSError) as e:
            logger.warning("Failed to read user info at %s: %s", path.absolute(), e)
            return None
