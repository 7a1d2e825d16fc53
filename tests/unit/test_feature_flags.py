import pytest

from collector.utils.feature_flags import (
    admin_feature_enabled,
    admin_schema_changes_enabled,
    get_feature_flags,
    is_feature_enabled,
    refresh_feature_flag_cache,
)

_ENV_FLAG_MAPPING = {
    "FEATURE_ADMIN_ENABLED": "feature_admin_enabled",
    "FEATURE_ADMIN_SCHEMA_CHANGES_ENABLED": "feature_admin_schema_changes_enabled",
}


@pytest.fixture(autouse=True)
def reset_flags(monkeypatch):
    """Clear env + cached values for each test to avoid cross-contamination."""
    for env_name in _ENV_FLAG_MAPPING:
        monkeypatch.delenv(env_name, raising=False)
    refresh_feature_flag_cache()
    yield
    refresh_feature_flag_cache()


def test_get_feature_flags_defaults_true():
    assert get_feature_flags() == {
        "feature_admin_enabled": True,
        "feature_admin_schema_changes_enabled": True,
    }
    assert admin_feature_enabled() is True
    assert admin_schema_changes_enabled() is True


@pytest.mark.parametrize("env_name,flag_key", list(_ENV_FLAG_MAPPING.items()))
def test_individual_flag_disabled_via_env(monkeypatch, env_name: str, flag_key: str):
    monkeypatch.setenv(env_name, "false")
    refresh_feature_flag_cache()

    assert get_feature_flags()[flag_key] is False
    assert is_feature_enabled(flag_key) is False


@pytest.mark.parametrize("raw_value", ["maybe", "junk", "2"])
def test_invalid_value_falls_back_to_default(monkeypatch, raw_value):
    monkeypatch.setenv("FEATURE_ADMIN_ENABLED", raw_value)
    refresh_feature_flag_cache()

    assert admin_feature_enabled() is True


def test_refresh_feature_flag_cache_forces_reload(monkeypatch):
    monkeypatch.setenv("FEATURE_ADMIN_ENABLED", "false")
    refresh_feature_flag_cache()
    assert admin_feature_enabled() is False

    # Update env without clearing cache – still should read stale value
    monkeypatch.setenv("FEATURE_ADMIN_ENABLED", "true")
    assert admin_feature_enabled() is False

    refresh_feature_flag_cache()
    assert admin_feature_enabled() is True
