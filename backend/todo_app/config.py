# todo_app/config.py
import os
import logging
from pydantic import BaseModel
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEV_JWT_SECRET = "dev-secret"


class ConfigError(RuntimeError):
    """Raised when the environment cannot produce a usable configuration."""


def _trueish(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    # General app settings
    APP_NAME: str = "Todo App"
    env: str = "development"

    # Host & Port settings
    host: str = "0.0.0.0"
    port: int = 4000

    # Data store connection string (Tortoise URL, e.g. postgres://... or sqlite://...)
    database_url: str | None = None
    generate_schemas: bool = True

    # Token signing
    jwt_secret: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS256"
    web_token_ttl_minutes: int = 120          # browser session cookie
    api_token_ttl_minutes: int = 7 * 24 * 60  # token returned by the login mutation
    csrf_token_ttl_minutes: int = 120

    # Single allowed cross-origin caller (cookies included)
    cors_origin: str = "http://localhost:3000"

    # Fixed-window rate limiting per client address
    rate_limit_max: int = 100
    rate_limit_window_seconds: int = 15 * 60

    # Upper bound for the API `take` argument
    max_page_size: int = 100

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    @property
    def cookie_secure(self) -> bool:
        return self.is_production


def load_settings(env_file: str | None = None) -> Settings:
    """
    Build the process configuration from `.env` and the environment.

    Called once by the composition root; the resulting object is handed to
    every component that needs it.

    Raises:
        ConfigError: production mode without JWT_SECRET
    """
    load_dotenv(dotenv_path=env_file)  # Load environment variables from .env file

    env = os.getenv("ENV", "development")
    jwt_secret = os.getenv("JWT_SECRET")
    if not jwt_secret:
        if env.lower() == "production":
            raise ConfigError("JWT_SECRET must be set in production")
        logger.warning("JWT_SECRET not set, using the development secret")
        jwt_secret = DEV_JWT_SECRET

    return Settings(
        env=env,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "4000")),
        database_url=os.getenv("DATABASE_URL") or None,
        generate_schemas=_trueish(os.getenv("DB_GENERATE_SCHEMAS"), default=True),
        jwt_secret=jwt_secret,
        web_token_ttl_minutes=int(os.getenv("WEB_TOKEN_TTL_MINUTES", "120")),
        api_token_ttl_minutes=int(os.getenv("API_TOKEN_TTL_MINUTES", str(7 * 24 * 60))),
        csrf_token_ttl_minutes=int(os.getenv("CSRF_TOKEN_TTL_MINUTES", "120")),
        cors_origin=os.getenv("CORS_ORIGIN", "http://localhost:3000"),
        rate_limit_max=int(os.getenv("RATE_LIMIT_MAX", "100")),
        rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", str(15 * 60))),
        max_page_size=int(os.getenv("MAX_PAGE_SIZE", "100")),
    )
