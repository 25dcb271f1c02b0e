"""Runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"


@dataclass(frozen=True, slots=True)
class Settings:
    """Process-wide configuration. Build with Settings.from_env()."""

    auth0_domain: str = ""
    auth0_audience: str = ""
    database_url: str = ""
    coingecko_api_key: str = ""
    coingecko_base_url: str = COINGECKO_BASE_URL
    upstream_timeout: float = 10.0
    jwks_timeout: float = 30.0
    max_message_length: int = 1000
    history_limit: int = 50
    retention_keep: int = 50
    retention_interval: float = 3600.0
    cache_max_entries: int = 1024
    cors_origins: tuple[str, ...] = ("*",)
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Read settings from the environment. Empty values fall back to defaults.

        Raises ValueError when a numeric variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def text(name: str, default: str) -> str:
            value = env.get(name, "").strip()
            return value or default

        def number(name: str, default, kind):
            raw = env.get(name, "").strip()
            if not raw:
                return default
            try:
                return kind(raw)
            except ValueError:
                raise ValueError(f"{name} must be a {kind.__name__}, got {raw!r}") from None

        origins = tuple(
            origin.strip() for origin in text("CORS_ORIGINS", "*").split(",") if origin.strip()
        )

        return cls(
            auth0_domain=text("AUTH0_DOMAIN", defaults.auth0_domain),
            auth0_audience=text("AUTH0_AUDIENCE", defaults.auth0_audience),
            database_url=text("DATABASE_URL", defaults.database_url),
            coingecko_api_key=text("COINGECKO_API_KEY", defaults.coingecko_api_key),
            coingecko_base_url=text("COINGECKO_BASE_URL", defaults.coingecko_base_url),
            upstream_timeout=number("UPSTREAM_TIMEOUT", defaults.upstream_timeout, float),
            jwks_timeout=number("JWKS_TIMEOUT", defaults.jwks_timeout, float),
            max_message_length=number(
                "CHAT_MAX_MESSAGE_LENGTH", defaults.max_message_length, int
            ),
            history_limit=number("CHAT_HISTORY_LIMIT", defaults.history_limit, int),
            retention_keep=number("CHAT_RETENTION_KEEP", defaults.retention_keep, int),
            retention_interval=number(
                "CHAT_RETENTION_INTERVAL", defaults.retention_interval, float
            ),
            cache_max_entries=number("CACHE_MAX_ENTRIES", defaults.cache_max_entries, int),
            cors_origins=origins or defaults.cors_origins,
            log_level=text("LOG_LEVEL", defaults.log_level).upper(),
            host=text("HOST", defaults.host),
            port=number("PORT", defaults.port, int),
        )
