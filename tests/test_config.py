import pytest

from snip.config import Settings, load_settings


def test_defaults(monkeypatch):
    for name in (
        "BASE_URL",
        "SHORT_CODE_LENGTH",
        "MAX_ALLOCATION_ATTEMPTS",
        "ENABLE_ANALYTICS",
        "ENABLE_CUSTOM_CODES",
        "ENABLE_CACHING",
        "ENABLE_RATE_LIMITING",
        "CACHE_TTL_SECONDS",
        "CACHE_FLUSH_ON_STARTUP",
        "RATE_LIMIT_WINDOW_MS",
        "RATE_LIMIT_MAX_REQUESTS",
        "RATE_LIMIT_SWEEP_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings()

    assert settings == Settings()
    assert settings.short_code_length == 7
    assert settings.max_allocation_attempts == 5
    assert settings.cache_ttl_seconds == 3600
    assert not settings.enable_analytics


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("BASE_URL", "https://sn.ip/")
    monkeypatch.setenv("SHORT_CODE_LENGTH", "9")
    monkeypatch.setenv("ENABLE_ANALYTICS", "true")
    monkeypatch.setenv("ENABLE_CACHING", "TRUE")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "60")
    monkeypatch.setenv("RATE_LIMIT_WINDOW_MS", "1000")
    monkeypatch.setenv("RATE_LIMIT_MAX_REQUESTS", "3")

    settings = load_settings()

    assert settings.base_url == "https://sn.ip"
    assert settings.short_code_length == 9
    assert settings.enable_analytics
    assert settings.enable_caching
    assert settings.cache_ttl_seconds == 60
    assert settings.rate_limit_window_ms == 1000
    assert settings.rate_limit_max_requests == 3


@pytest.mark.parametrize("value", ["1", "yes", "false", ""])
def test_flags_require_literal_true(monkeypatch, value):
    monkeypatch.setenv("ENABLE_CUSTOM_CODES", value)
    assert not load_settings().enable_custom_codes


def test_features():
    settings = Settings(enable_caching=True, enable_rate_limiting=True)
    assert settings.features() == {
        "analytics": False,
        "customCodes": False,
        "caching": True,
        "rateLimiting": True,
    }
