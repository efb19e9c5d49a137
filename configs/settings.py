from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


_TRUE_VALUES = {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


class Settings:
    """
    Central configuration for the content record service.

    Values are loaded once from environment variables (with sensible defaults)
    and then exposed via typed properties.
    """

    STORE_BACKENDS = ("http", "memory")
    WRITE_MODES = ("unconditional", "optimistic")

    def __init__(self) -> None:
        # Key layout
        self._data_domain = os.getenv("CONTENT_RECORD_DATA_DOMAIN", "crqa.hns")
        self._portal_domain = os.getenv("CONTENT_RECORD_PORTAL_DOMAIN", "siasky.net")

        # Remote key/value store
        self._store_backend = os.getenv("CONTENT_RECORD_STORE_BACKEND", "http")
        self._store_url = os.getenv(
            "CONTENT_RECORD_STORE_URL", "http://localhost:8080/kv"
        )
        self._store_token = os.getenv("CONTENT_RECORD_STORE_TOKEN") or None
        self._store_timeout = os.getenv("CONTENT_RECORD_STORE_TIMEOUT", "30")

        # Write strategy
        self._write_mode = os.getenv("CONTENT_RECORD_WRITE_MODE", "unconditional")

        # Debug output
        self._debug = os.getenv("CONTENT_RECORD_DEBUG", "false").lower() in _TRUE_VALUES

    # ------------------------------------------------------------------
    # Key layout
    # ------------------------------------------------------------------

    @property
    def data_domain(self) -> str:
        return self._data_domain

    @property
    def portal_domain(self) -> str:
        return self._portal_domain

    # ------------------------------------------------------------------
    # Store settings
    # ------------------------------------------------------------------

    @property
    def store_backend(self) -> str:
        if self._store_backend not in self.STORE_BACKENDS:
            raise RuntimeError(
                f"CONTENT_RECORD_STORE_BACKEND must be one of {self.STORE_BACKENDS}, "
                f"got {self._store_backend!r}"
            )
        return self._store_backend

    @property
    def store_url(self) -> str:
        return self._store_url

    @property
    def store_token(self) -> Optional[str]:
        return self._store_token

    @property
    def store_timeout(self) -> float:
        try:
            return float(self._store_timeout)
        except ValueError:
            raise RuntimeError(
                f"CONTENT_RECORD_STORE_TIMEOUT must be a number, got {self._store_timeout!r}"
            )

    # ------------------------------------------------------------------
    # Log settings
    # ------------------------------------------------------------------

    @property
    def write_mode(self) -> str:
        if self._write_mode not in self.WRITE_MODES:
            raise RuntimeError(
                f"CONTENT_RECORD_WRITE_MODE must be one of {self.WRITE_MODES}, "
                f"got {self._write_mode!r}"
            )
        return self._write_mode

    @property
    def max_attempts(self) -> int:
        return _int_env("CONTENT_RECORD_MAX_ATTEMPTS", 5)

    @property
    def page_size(self) -> int:
        return _int_env("CONTENT_RECORD_PAGE_SIZE", 1000)

    @property
    def entry_max_size(self) -> int:
        return _int_env("CONTENT_RECORD_ENTRY_MAX_SIZE", 1 << 12)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    @property
    def debug(self) -> bool:
        return self._debug


settings = Settings()
