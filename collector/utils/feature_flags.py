"""Feature flags for the table browser, read once from the environment."""

import os
from functools import lru_cache
from typing import Dict

# flag name -> (environment variable, default)
_FLAGS = {
    "feature_admin_enabled": ("FEATURE_ADMIN_ENABLED", True),
    "feature_admin_schema_changes_enabled": ("FEATURE_ADMIN_SCHEMA_CHANGES_ENABLED", True),
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"", "0", "false", "no", "off"}


def _env_flag(env_var: str, default: bool) -> bool:
    raw = os.getenv(env_var)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    return default


@lru_cache(maxsize=None)
def get_feature_flags() -> Dict[str, bool]:
    return {name: _env_flag(env_var, default) for name, (env_var, default) in _FLAGS.items()}


def is_feature_enabled(flag: str) -> bool:
    return get_feature_flags()[flag]


def admin_feature_enabled() -> bool:
    """Toggle the whole table browser surface."""
    return is_feature_enabled("feature_admin_enabled")


def admin_schema_changes_enabled() -> bool:
    """Toggle table create/drop from the table browser."""
    return is_feature_enabled("feature_admin_schema_changes_enabled")


def refresh_feature_flag_cache() -> None:
    """Invalidate cached flag values (useful for tests)."""
    get_feature_flags.cache_clear()
