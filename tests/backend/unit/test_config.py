"""
Unit tests for settings loading.
"""
import pytest

from todo_app.config import DEV_JWT_SECRET, ConfigError, Settings, load_settings

ENV_VARS = [
    "ENV", "JWT_SECRET", "DATABASE_URL", "PORT", "CORS_ORIGIN",
    "WEB_TOKEN_TTL_MINUTES", "API_TOKEN_TTL_MINUTES", "RATE_LIMIT_MAX", "DB_GENERATE_SCHEMAS",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Point dotenv at an empty file so a developer's .env cannot leak in
    env_file = tmp_path / ".env"
    env_file.write_text("")
    return str(env_file)


def test_defaults(clean_env):
    settings = load_settings(clean_env)
    assert settings.env == "development"
    assert settings.port == 4000
    assert settings.database_url is None
    assert settings.jwt_secret == DEV_JWT_SECRET
    assert settings.web_token_ttl_minutes == 120
    assert settings.api_token_ttl_minutes == 7 * 24 * 60
    assert settings.cors_origin == "http://localhost:3000"
    assert settings.rate_limit_max == 100
    assert settings.cookie_secure is False


def test_reads_environment(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://:memory:")
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("CORS_ORIGIN", "https://todo.example.com")
    monkeypatch.setenv("API_TOKEN_TTL_MINUTES", "60")
    monkeypatch.setenv("DB_GENERATE_SCHEMAS", "0")
    settings = load_settings(clean_env)
    assert settings.database_url == "sqlite://:memory:"
    assert settings.jwt_secret == "s3cret"
    assert settings.port == 8080
    assert settings.cors_origin == "https://todo.example.com"
    assert settings.api_token_ttl_minutes == 60
    assert settings.generate_schemas is False


def test_production_requires_secret(clean_env, monkeypatch):
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(ConfigError):
        load_settings(clean_env)


def test_production_cookies_are_secure():
    settings = Settings(env="production", jwt_secret="x")
    assert settings.is_production is True
    assert settings.cookie_secure is True
