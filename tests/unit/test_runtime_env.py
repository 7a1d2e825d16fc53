from collector.utils.runtime import diagnostics_active, environment_name, is_production


def test_environment_defaults_to_production(monkeypatch):
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    assert environment_name() == "production"
    assert is_production() is True
    assert diagnostics_active() is False


def test_diagnostics_active_for_local_development(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("APP_BASE_URL", "http://localhost:3000")
    assert diagnostics_active() is True


def test_diagnostics_active_without_app_base_url(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "staging")
    monkeypatch.delenv("APP_BASE_URL", raising=False)
    assert diagnostics_active() is True


def test_diagnostics_disabled_for_remote_host(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "staging")
    monkeypatch.setenv("APP_BASE_URL", "https://forms.example.com")
    monkeypatch.delenv("DIAGNOSTICS_ALLOWED_HOSTS", raising=False)
    assert diagnostics_active() is False

    monkeypatch.setenv("DIAGNOSTICS_ALLOWED_HOSTS", "forms.example.com")
    assert diagnostics_active() is True


def test_prod_alias_counts_as_production(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "PROD")
    assert is_production() is True
    assert diagnostics_active() is False
