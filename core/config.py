"""
core/config.py -- Centralized realm configuration via pydantic-settings.

All environment variable reads for the realm happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. users_root -> USERS_ROOT).

  @model_validator(mode="after"): Cross-field checks that must hold before
      any lookup runs. A bad reload marker or record filename is a startup
      failure, not a per-login surprise.

Layer rule: core/ is the kernel. This module may not import from auth/ or cache/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("userrealm.config")


class Settings(BaseSettings):
    """Realm settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    # Directory holding one subdirectory per user. May be relative; when it is
    # not a readable directory as given it is re-resolved under users_base_dir.
    users_root: str = "users"
    # Host-provided base directory used only for the fallback above.
    # Empty string means "no fallback".
    users_base_dir: str = ""
    record_filename: str = "user.xml"

    # ------------------------------------------------------------------
    # Lookup protocol
    # ------------------------------------------------------------------

    # A username starting with this character forces a re-read from disk.
    reload_marker: str = "*"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_lookup_settings(self) -> "Settings":
        """Reject settings that would make the lookup protocol ambiguous.

        reload_marker: exactly one character. An empty marker would make every
            username a forced reload; a longer one breaks the single-character
            strip in PrincipalCache.resolve().

        record_filename: a bare filename. The record must sit directly inside
            the user's directory.
        """
        if len(self.reload_marker) != 1:
            raise ValueError("RELOAD_MARKER must be exactly one character.")
        if not self.record_filename or any(sep in self.record_filename for sep in ("/", "\\")):
            raise ValueError("RECORD_FILENAME must be a bare filename.")
        if self.record_filename in (".", ".."):
            raise ValueError("RECORD_FILENAME must be a bare filename.")
        if not self.users_base_dir:
            logger.debug("USERS_BASE_DIR not set -- users root is used exactly as configured")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the realm Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
