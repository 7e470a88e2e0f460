# todo_app/core/db.py
"""
Database configuration and initialization module.
Handles Tortoise ORM setup, database connection, and migration configuration.
"""
import logging
import os
from tortoise import Tortoise

from todo_app.config import ConfigError, Settings

logger = logging.getLogger(__name__)

MODEL_MODULES = [
    "todo_app.models.user",   # User model
    "todo_app.models.todo",   # Todo model
    "aerich.models",          # Required: Let Aerich manage migration tables
]


def build_tortoise_config(db_url: str) -> dict:
    """Tortoise ORM configuration dictionary for the given connection string."""
    return {
        "connections": {"default": db_url},
        "apps": {
            "models": {
                "models": list(MODEL_MODULES),
                "default_connection": "default",
            },
        },
    }


# Read only by the Aerich CLI (see [tool.aerich] in pyproject.toml)
TORTOISE_ORM = build_tortoise_config(os.getenv("DATABASE_URL", "sqlite://db.sqlite3"))


async def init_db(settings: Settings) -> None:
    """
    Initialize the Tortoise ORM connection.

    Called once during application startup. A missing connection string or a
    failed connection is fatal: the error propagates and startup aborts.

    Raises:
        ConfigError: DATABASE_URL is not configured
    """
    if not settings.database_url:
        raise ConfigError("DATABASE_URL environment variable is not set")
    await Tortoise.init(config=build_tortoise_config(settings.database_url))
    if settings.generate_schemas:
        # safe=True only creates missing tables; use Aerich migrations for changes
        await Tortoise.generate_schemas(safe=True)
    logger.info("database connected (%s)", settings.database_url.split("://", 1)[0])


async def close_db() -> None:
    """Close all database connections on shutdown."""
    await Tortoise.close_connections()
