"""
linkhub configuration.

All values are loaded from environment variables (typically via .env):

- ENCRYPTION_SECRET     (required; Fernet key, urlsafe base64 of 32 bytes)
- STATE_SECRET          (required; HMAC secret for OAuth state signing)
- SESSION_SECRET        (optional; session cookie signing, defaults to STATE_SECRET)
- FACEBOOK_APP_ID / FACEBOOK_APP_SECRET / FACEBOOK_REDIRECT_URI / FACEBOOK_VERIFY_TOKEN
- WHATSAPP_APP_ID / WHATSAPP_APP_SECRET (fall back to the Facebook app)
- WHATSAPP_REDIRECT_URI / WHATSAPP_VERIFY_TOKEN
- GRAPH_API_VERSION, HTTP_CONNECT_TIMEOUT, HTTP_READ_TIMEOUT, STATE_MAX_AGE_SECONDS
- DATA_DIR, LOG_LEVEL, LOG_FORMAT, LOG_FILE, ENVIRONMENT, CORS_ORIGINS
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv

from linkhub.utils.exceptions import ConfigError


load_dotenv()


@dataclass(frozen=True)
class ProviderAppConfig:
    """OAuth app + webhook settings for one provider."""

    app_id: str
    app_secret: str
    redirect_uri: str
    verify_token: Optional[str]
    scopes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Settings:
    environment: str
    data_dir: Path
    encryption_key: str
    state_secret: str
    session_secret: str
    state_max_age_seconds: int
    graph_version: str
    http_timeout: tuple
    providers: Dict[str, ProviderAppConfig]
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


FACEBOOK_SCOPES = [
    "public_profile",
    "pages_show_list",
    "pages_manage_metadata",
    "pages_messaging",
]

WHATSAPP_SCOPES = [
    "whatsapp_business_management",
    "whatsapp_business_messaging",
]


def _env(name: str, default: str = "") -> str:
    return (os.getenv(name) or default).strip()


def _provider_config(
    prefix: str,
    scopes: List[str],
    fallback_id: str = "",
    fallback_secret: str = "",
) -> Optional[ProviderAppConfig]:
    app_id = _env(f"{prefix}_APP_ID", fallback_id)
    app_secret = _env(f"{prefix}_APP_SECRET", fallback_secret)
    redirect_uri = _env(f"{prefix}_REDIRECT_URI")
    if not app_id or not app_secret or not redirect_uri:
        return None
    return ProviderAppConfig(
        app_id=app_id,
        app_secret=app_secret,
        redirect_uri=redirect_uri,
        verify_token=_env(f"{prefix}_VERIFY_TOKEN") or None,
        scopes=list(scopes),
    )


def _validate_redirect_uri(name: str, cfg: ProviderAppConfig, environment: str) -> None:
    if environment == "production" and not cfg.redirect_uri.lower().startswith("https://"):
        raise ConfigError(f"HTTPS is required for the {name} OAuth redirect URI in production.")


@lru_cache
def load_settings() -> Settings:
    """Load settings from the environment; fails fast on missing secrets."""
    environment = _env("ENVIRONMENT", "development").lower()
    encryption_key = _env("ENCRYPTION_SECRET")
    state_secret = _env("STATE_SECRET")

    if not encryption_key:
        raise ConfigError("ENCRYPTION_SECRET must be set to a Fernet key for credential encryption.")
    if not state_secret:
        raise ConfigError("STATE_SECRET must be set for OAuth CSRF protection.")

    providers: Dict[str, ProviderAppConfig] = {}
    facebook = _provider_config("FACEBOOK", FACEBOOK_SCOPES)
    if facebook:
        providers["facebook"] = facebook
    whatsapp = _provider_config(
        "WHATSAPP",
        WHATSAPP_SCOPES,
        fallback_id=_env("FACEBOOK_APP_ID"),
        fallback_secret=_env("FACEBOOK_APP_SECRET"),
    )
    if whatsapp:
        providers["whatsapp"] = whatsapp

    for name, cfg in providers.items():
        _validate_redirect_uri(name, cfg, environment)

    try:
        http_timeout = (
            float(_env("HTTP_CONNECT_TIMEOUT", "10")),
            float(_env("HTTP_READ_TIMEOUT", "30")),
        )
        state_max_age = int(_env("STATE_MAX_AGE_SECONDS", "900"))
    except ValueError as e:
        raise ConfigError(f"Invalid numeric setting: {e}")

    cors = _env("CORS_ORIGINS")
    return Settings(
        environment=environment,
        data_dir=Path(_env("DATA_DIR", "data")),
        encryption_key=encryption_key,
        state_secret=state_secret,
        session_secret=_env("SESSION_SECRET") or state_secret,
        state_max_age_seconds=state_max_age,
        graph_version=_env("GRAPH_API_VERSION", "v22.0"),
        http_timeout=http_timeout,
        providers=providers,
        log_level=_env("LOG_LEVEL", "INFO"),
        log_format=_env("LOG_FORMAT", "json"),
        log_file=_env("LOG_FILE") or None,
        cors_origins=[o.strip() for o in cors.split(",") if o.strip()] if cors else ["*"],
    )
