"""Environment-sourced settings, read once at startup.

Environment variables:
- GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET: OAuth client credentials
- GOOGLE_REDIRECT_URI: OAuth redirect URI (must match the HTTP callback route)
- GOOGLE_TOKEN_PATH: Credential file (default: ./token.json)
- GOOGLE_DRIVE_SCOPES: Space or comma separated OAuth scopes
- CONDUIT_HTTP_HOST / CONDUIT_HTTP_PORT: HTTP adapter bind address
- CONDUIT_AUTH_SUCCESS_URL: Where the browser lands after a successful callback
- CONDUIT_CORS_ORIGINS: Comma separated dashboard origins
- CONDUIT_MAX_RESPONSE_BYTES: Response-size circuit breaker
- CONDUIT_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger("conduit.config")

DEFAULT_REDIRECT_URI = "http://localhost:3002/auth/google/callback"
DEFAULT_SUCCESS_URL = "http://localhost:3000/home?auth_success=true"
DEFAULT_SCOPES = ("https://www.googleapis.com/auth/drive",)
DEFAULT_CORS_ORIGINS = tuple(f"http://localhost:{port}" for port in range(3000, 3005))
DEFAULT_HTTP_PORT = 3002
DEFAULT_MAX_RESPONSE_BYTES = 5_000_000


def _split(value: str) -> tuple[str, ...]:
    return tuple(part for part in value.replace(",", " ").split() if part)


def _int_setting(env: Mapping[str, str], key: str, default: int, low: int, high: int) -> int:
    raw = env.get(key, "").strip()
    value = int(raw) if raw else default
    if value < low or value > high:
        raise ValueError(f"{key} must be between {low} and {high}")
    return value


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration for both tool servers."""

    client_id: str
    client_secret: str
    redirect_uri: str
    token_path: Path
    scopes: tuple[str, ...]
    http_host: str
    http_port: int
    success_url: str
    cors_origins: tuple[str, ...]
    max_response_bytes: int
    log_level: str

    @property
    def oauth_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build ``Settings`` from the environment.

    Raises:
        ValueError: If a numeric setting is malformed or out of range.
    """
    env = os.environ if environ is None else environ
    token_path = env.get("GOOGLE_TOKEN_PATH", "").strip()
    return Settings(
        client_id=env.get("GOOGLE_CLIENT_ID", "").strip(),
        client_secret=env.get("GOOGLE_CLIENT_SECRET", "").strip(),
        redirect_uri=env.get("GOOGLE_REDIRECT_URI", "").strip() or DEFAULT_REDIRECT_URI,
        token_path=Path(token_path).expanduser() if token_path else Path.cwd() / "token.json",
        scopes=_split(env.get("GOOGLE_DRIVE_SCOPES", "")) or DEFAULT_SCOPES,
        http_host=env.get("CONDUIT_HTTP_HOST", "").strip() or "127.0.0.1",
        http_port=_int_setting(env, "CONDUIT_HTTP_PORT", DEFAULT_HTTP_PORT, 1, 65535),
        success_url=env.get("CONDUIT_AUTH_SUCCESS_URL", "").strip() or DEFAULT_SUCCESS_URL,
        cors_origins=_split(env.get("CONDUIT_CORS_ORIGINS", "")) or DEFAULT_CORS_ORIGINS,
        max_response_bytes=_int_setting(
            env, "CONDUIT_MAX_RESPONSE_BYTES", DEFAULT_MAX_RESPONSE_BYTES, 1_000, 50_000_000
        ),
        log_level=env.get("CONDUIT_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def warn_if_unconfigured(settings: Settings) -> None:
    if settings.oauth_configured:
        return
    logger.warning(
        "GOOGLE_CLIENT_ID/GOOGLE_CLIENT_SECRET are not set. "
        "Google Drive authorization will fail until they are configured."
    )


__all__ = ["Settings", "configure_logging", "load_settings", "warn_if_unconfigured"]
