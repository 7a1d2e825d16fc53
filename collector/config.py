"""Service settings sourced from environment variables."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple

from collector.errors import ConfigurationError

CAPTCHA_PROVIDERS = ("recaptcha", "turnstile")
TABLE_NAME_PATTERN = re.compile(r"^[_a-zA-Z0-9]+$")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _get_database_url() -> str:
    # If DATABASE_URL is explicitly set, use it
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    # Otherwise, generate from individual components (all must be set)
    db_user = os.getenv("POSTGRES_USER")
    db_password = os.getenv("POSTGRES_PASSWORD")
    db_host = os.getenv("POSTGRES_HOST")
    db_port = os.getenv("POSTGRES_PORT")
    db_name = os.getenv("POSTGRES_DB")

    if not all([db_user, db_password, db_host, db_port, db_name]):
        missing = []
        if not db_user: missing.append("POSTGRES_USER")
        if not db_password: missing.append("POSTGRES_PASSWORD")
        if not db_host: missing.append("POSTGRES_HOST")
        if not db_port: missing.append("POSTGRES_PORT")
        if not db_name: missing.append("POSTGRES_DB")
        raise ConfigurationError(
            "database_not_configured",
            f"Missing required database environment variables: {', '.join(missing)}",
        )

    return f"postgresql+psycopg2://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the form collector."""

    database_url: str
    lock_timeout_seconds: float = 5.0
    allocation_max_attempts: int = 3
    allocation_retry_backoff_seconds: float = 0.05
    captcha_provider: Optional[str] = None
    recaptcha_secret: Optional[str] = None
    turnstile_secret: Optional[str] = None
    captcha_timeout_seconds: float = 5.0
    admin_extra_tables: Tuple[str, ...] = ()
    admin_default_row_limit: int = 100
    admin_max_row_limit: int = 1000
    provision_create_database: bool = True
    provision_on_startup: bool = True

    @classmethod
    def from_environment(cls) -> "Settings":
        provider = (
            os.getenv("CAPTCHA_PROVIDER")
            or os.getenv("TWO_FA_PROVIDER")
            or os.getenv("NEXT_PUBLIC_2FA_PROVIDER")
        )
        settings = cls(
            database_url=_get_database_url(),
            lock_timeout_seconds=_env_float("LOCK_TIMEOUT_SECONDS", 5.0),
            allocation_max_attempts=max(1, _env_int("ALLOCATION_MAX_ATTEMPTS", 3)),
            allocation_retry_backoff_seconds=_env_float("ALLOCATION_RETRY_BACKOFF_SECONDS", 0.05),
            captcha_provider=provider.strip().lower() if provider and provider.strip() else None,
            recaptcha_secret=os.getenv("RECAPTCHA_SECRET") or None,
            turnstile_secret=os.getenv("TURNSTILE_SECRET") or None,
            captcha_timeout_seconds=_env_float("CAPTCHA_TIMEOUT_SECONDS", 5.0),
            admin_extra_tables=_env_list("ADMIN_EXTRA_TABLES"),
            admin_max_row_limit=max(1, _env_int("ADMIN_MAX_ROW_LIMIT", 1000)),
            provision_create_database=_env_bool("PROVISION_CREATE_DATABASE", True),
            provision_on_startup=_env_bool("PROVISION_ON_STARTUP", True),
        )
        errors = settings.validate()
        if errors:
            raise ConfigurationError("invalid_configuration", "; ".join(errors))
        return settings

    @property
    def captcha_enabled(self) -> bool:
        return self.captcha_provider is not None

    @property
    def captcha_secret(self) -> Optional[str]:
        if self.captcha_provider == "recaptcha":
            return self.recaptcha_secret
        if self.captcha_provider == "turnstile":
            return self.turnstile_secret
        return None

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []
        if self.captcha_provider is not None:
            if self.captcha_provider not in CAPTCHA_PROVIDERS:
                errors.append(f"Unknown CAPTCHA_PROVIDER '{self.captcha_provider}'")
            elif not self.captcha_secret:
                errors.append(f"{self.captcha_provider.upper()}_SECRET is required when CAPTCHA_PROVIDER={self.captcha_provider}")
        for name in self.admin_extra_tables:
            if not TABLE_NAME_PATTERN.match(name):
                errors.append(f"ADMIN_EXTRA_TABLES entry '{name}' is not a valid table name")
        if self.lock_timeout_seconds <= 0:
            errors.append("LOCK_TIMEOUT_SECONDS must be positive")
        return errors


@lru_cache(maxsize=None)
def get_settings() -> Settings:
    """Return the cached settings instance built from the environment."""
    return Settings.from_environment()


def refresh_settings_cache() -> None:
    """Invalidate cached settings (useful for tests)."""
    get_settings.cache_clear()
