"""Single config object: built once at startup, passed to create_app and available via DI."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Any, Mapping

from licensehub.core.errors import ConfigError

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./licensehub.db"

_KEY_PREFIX = re.compile(r"^API_KEY\s*=\s*", re.IGNORECASE)
_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def normalize_api_key(raw: str | None) -> str:
    """Strip whitespace, surrounding quotes and a pasted ``API_KEY=`` prefix."""
    value = _KEY_PREFIX.sub("", raw or "").strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1].strip()
    return value


def normalize_database_url(url: str) -> str:
    """Hosted Postgres hands out plain postgres:// URLs; route them through asyncpg."""
    url = url.strip()
    for scheme in ("postgres://", "postgresql://"):
        if url.startswith(scheme):
            return "postgresql+asyncpg://" + url[len(scheme):]
    return url


def _as_bool(name: str, value: str) -> bool:
    v = value.strip().lower()
    if v in _TRUTHY:
        return True
    if v in _FALSY:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _as_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from None


@dataclass
class Settings:
    """
    Service settings. Build with Settings.from_env() or directly in tests;
    the auth middleware receives api_key from here, never from os.environ.
    """

    api_key: str = ""
    database_url: str = DEFAULT_DATABASE_URL
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    lock_timeout_ms: int = 5000
    auto_create_schema: bool = True

    def __post_init__(self) -> None:
        self.api_key = normalize_api_key(self.api_key)
        self.database_url = normalize_database_url(self.database_url)
        self.log_level = self.log_level.upper()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Load from the process environment (or a given mapping)."""
        env = os.environ if environ is None else environ
        kwargs: dict[str, Any] = {
            "api_key": env.get("API_KEY", ""),
            "database_url": env.get("DATABASE_URL") or DEFAULT_DATABASE_URL,
        }
        if env.get("HOST"):
            kwargs["host"] = env["HOST"]
        if env.get("PORT"):
            kwargs["port"] = _as_int("PORT", env["PORT"])
        if env.get("LOG_LEVEL"):
            kwargs["log_level"] = env["LOG_LEVEL"]
        if env.get("LOCK_TIMEOUT_MS"):
            kwargs["lock_timeout_ms"] = _as_int("LOCK_TIMEOUT_MS", env["LOCK_TIMEOUT_MS"])
        if "AUTO_CREATE_SCHEMA" in env:
            kwargs["auto_create_schema"] = _as_bool("AUTO_CREATE_SCHEMA", env["AUTO_CREATE_SCHEMA"])
        return cls(**kwargs)

    def validate(self) -> Settings:
        """Raise ConfigError unless the service may accept traffic with these settings."""
        if not self.api_key:
            raise ConfigError("API_KEY is not set")
        if not self.database_url:
            raise ConfigError("DATABASE_URL is not set")
        if not 0 < self.port < 65536:
            raise ConfigError(f"PORT out of range: {self.port}")
        if self.lock_timeout_ms < 0:
            raise ConfigError("LOCK_TIMEOUT_MS must be >= 0")
        return self
