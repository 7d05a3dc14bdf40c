import logging
import sys
from functools import lru_cache
from typing import Optional, TextIO

import structlog
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application settings
    app_name: str = "Toy Payments Engine"
    app_version: str = "1.0.0"
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Security settings
    rate_limit_per_minute: int = 30
    enable_rate_limit: bool = True

    # Output settings
    sort_output: bool = True  # sort CLI snapshot by client id

    model_config = SettingsConfigDict(
        env_prefix="PAYMENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Environment-specific configurations
class DevelopmentSettings(Settings):
    debug: bool = True
    log_level: str = "DEBUG"
    log_format: str = "text"
    rate_limit_per_minute: int = 100  # More lenient for development


class ProductionSettings(Settings):
    debug: bool = False
    log_level: str = "INFO"
    rate_limit_per_minute: int = 30


class TestingSettings(Settings):
    __test__ = False  # not a pytest test class

    debug: bool = True
    log_level: str = "WARNING"  # Reduce noise in tests
    enable_rate_limit: bool = False


def get_settings_for_environment(env: str = "development") -> Settings:
    """Get settings for specific environment."""
    settings_map = {
        "development": DevelopmentSettings,
        "production": ProductionSettings,
        "testing": TestingSettings,
    }

    settings_class = settings_map.get(env.lower(), Settings)
    return settings_class()


def configure_logging(settings: Optional[Settings] = None, stream: Optional[TextIO] = None) -> None:
    """Route structlog through stdlib logging onto stderr.

    stdout is kept free for the account snapshot written by the CLI.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=level,
        force=True,
    )

    if settings.log_format == "text":
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
