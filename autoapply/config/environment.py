"""Environment variable loading and validation."""

import os
from typing import Optional

from .exceptions import ConfigurationError

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
SUPPORTED_URL_PREFIXES = ("sqlite", "postgresql", "mysql", "mariadb")


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        database_url: str,
        log_level: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self.database_url = database_url
        self.log_level = log_level
        self.environment = environment or "local"


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Required environment variables:
    - DATABASE_URL: SQLAlchemy URL of the data store holding candidates,
      job embeddings, applications and run records

    Optional environment variables:
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - ENVIRONMENT: Label stamped on log records (production, staging, local)

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    errors = []

    database_url = (os.getenv("DATABASE_URL") or "").strip()
    log_level = os.getenv("LOG_LEVEL")
    environment = os.getenv("ENVIRONMENT")

    if not database_url:
        errors.append("Missing required environment variable: DATABASE_URL")
    elif not database_url.startswith(SUPPORTED_URL_PREFIXES) or "://" not in database_url:
        errors.append(
            f"Invalid DATABASE_URL: '{_redact(database_url)}'. "
            f"Expected a SQLAlchemy URL starting with one of: {', '.join(SUPPORTED_URL_PREFIXES)}"
        )

    if log_level:
        log_level = log_level.strip().upper()
        if log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
            )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in the database URL",
                "Use a URL such as sqlite:///./data/autoapply.db",
            ],
        )

    return EnvironmentConfig(
        database_url=database_url,
        log_level=log_level or None,
        environment=environment,
    )


def _redact(url: str) -> str:
    """Hide the password part of a URL before echoing it back."""
    if "@" in url and "://" in url:
        scheme, rest = url.split("://", 1)
        credentials, host = rest.rsplit("@", 1)
        user = credentials.split(":", 1)[0]
        return f"{scheme}://{user}:***@{host}"
    return url
