"""
Configuration helpers for the cardauth backend.

Settings are read once from environment variables so that routers/services do
not fetch os.environ directly. Tests call ``get_settings.cache_clear()`` after
patching the environment.
"""

from dataclasses import dataclass
from functools import lru_cache
import os


@dataclass(frozen=True)
class Settings:
    """Typed view of environment variables."""

    app_env: str
    database_url: str
    session_ttl_seconds: int
    risk_model: str
    risk_timeout_seconds: float
    risk_fail_open: bool
    card_validity_years: int
    log_level: str
    log_json: bool
    trust_proxy_headers: bool


@lru_cache
def get_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    def _int(value: str, default: int = 0) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _float(value: str, default: float = 0.0) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def _bool(value: str | None, default: bool = False) -> bool:
        if value is None:
            return default
        return value.strip().lower() in {"1", "true", "yes", "on"}

    app_env = (os.getenv("APP_ENV") or "dev").lower()
    return Settings(
        app_env=app_env,
        database_url=os.getenv("DATABASE_URL", "sqlite:///./cardauth.db").strip(),
        session_ttl_seconds=_int(os.getenv("SESSION_TTL_SECONDS", "86400"), 86400),
        risk_model=(os.getenv("RISK_MODEL") or "static").strip().lower(),
        risk_timeout_seconds=_float(os.getenv("RISK_TIMEOUT_SECONDS", "2.0"), 2.0),
        risk_fail_open=_bool(os.getenv("RISK_FAIL_OPEN"), False),
        card_validity_years=_int(os.getenv("CARD_VALIDITY_YEARS", "4"), 4),
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
        log_json=_bool(os.getenv("LOG_JSON"), app_env == "prod"),
        trust_proxy_headers=_bool(os.getenv("TRUST_PROXY_HEADERS"), False),
    )
