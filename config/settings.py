"""
Configuration settings with environment variable loading.

All secrets MUST be provided via environment variables.
Never log or expose tokens in any output.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class FirebaseConfig:
    """Firebase Realtime Database configuration."""
    database_url: str
    auth_token: Optional[str] = None
    timeout: float = 30.0
    max_retries: int = 3

    def __post_init__(self):
        if not self.database_url:
            raise ConfigurationError("FIREBASE_DATABASE_URL is required")
        # Validate URL format
        if not self.database_url.startswith("https://"):
            raise ConfigurationError("FIREBASE_DATABASE_URL must use HTTPS")
        if self.timeout <= 0:
            raise ConfigurationError("FIREBASE_TIMEOUT must be positive")
        if self.max_retries < 0:
            raise ConfigurationError("FIREBASE_MAX_RETRIES must not be negative")

    def __repr__(self) -> str:
        """Never expose token in repr."""
        token = "***REDACTED***" if self.auth_token else None
        return f"FirebaseConfig(database_url='{self.database_url}', auth_token={token!r})"


@dataclass(frozen=True)
class QueryConfig:
    """Query backend configuration."""
    backend_url: Optional[str] = None
    access_token: Optional[str] = None
    max_retries: int = 3

    def __post_init__(self):
        if self.max_retries < 0:
            raise ConfigurationError("QUERY_MAX_RETRIES must not be negative")

    def __repr__(self) -> str:
        token = "***REDACTED***" if self.access_token else None
        return (
            f"QueryConfig(backend_url={self.backend_url!r}, access_token={token!r}, "
            f"max_retries={self.max_retries})"
        )


@dataclass(frozen=True)
class SyncConfig:
    """Sync engine configuration."""
    write_await_seconds: float = 60.0
    max_workers: int = 4
    identity_field: Optional[str] = "id"

    def __post_init__(self):
        if self.write_await_seconds <= 0:
            raise ConfigurationError("SYNC_WRITE_AWAIT_SECONDS must be positive")
        if self.max_workers < 1:
            raise ConfigurationError("SYNC_MAX_WORKERS must be at least 1")


@dataclass(frozen=True)
class Settings:
    """
    Application settings container.

    All configuration is loaded from environment variables.
    Secrets are never logged or exposed.
    """
    firebase: FirebaseConfig
    query: QueryConfig
    sync: SyncConfig
    log_level: str = "INFO"

    def __repr__(self) -> str:
        return (
            f"Settings(\n"
            f"  firebase={self.firebase},\n"
            f"  query={self.query},\n"
            f"  sync={self.sync}\n"
            f")"
        )


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Load settings from environment variables.

    Optionally loads from a .env file first.

    Args:
        env_file: Optional path to .env file

    Returns:
        Configured Settings instance

    Raises:
        ConfigurationError: If required configuration is missing
    """
    # Load .env file if provided
    if env_file and env_file.exists():
        _load_env_file(env_file)
    elif Path(".env").exists():
        _load_env_file(Path(".env"))

    try:
        firebase = FirebaseConfig(
            database_url=os.getenv("FIREBASE_DATABASE_URL", "").rstrip("/"),
            auth_token=os.getenv("FIREBASE_AUTH_TOKEN") or None,
            timeout=float(os.getenv("FIREBASE_TIMEOUT", "30.0")),
            max_retries=int(os.getenv("FIREBASE_MAX_RETRIES", "3")),
        )

        query = QueryConfig(
            backend_url=os.getenv("QUERY_BACKEND_URL") or None,
            access_token=os.getenv("QUERY_ACCESS_TOKEN") or None,
            max_retries=int(os.getenv("QUERY_MAX_RETRIES", "3")),
        )

        sync = SyncConfig(
            write_await_seconds=float(os.getenv("SYNC_WRITE_AWAIT_SECONDS", "60.0")),
            max_workers=int(os.getenv("SYNC_MAX_WORKERS", "4")),
            identity_field=os.getenv("SYNC_IDENTITY_FIELD", "id").strip() or None,
        )

        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

        settings = Settings(
            firebase=firebase,
            query=query,
            sync=sync,
            log_level=log_level,
        )

        logger.info("Configuration loaded successfully")
        logger.debug(f"Settings: {settings}")

        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(f"Failed to load configuration: {e}") from e


def _load_env_file(path: Path) -> None:
    """
    Load environment variables from a file.

    Simple .env parser that handles:
    - KEY=value
    - KEY="quoted value"
    - # comments
    - Empty lines
    """
    logger.debug(f"Loading environment from {path}")

    with open(path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue

            # Parse KEY=value
            if "=" not in line:
                logger.warning(f"Invalid line {line_num} in {path}: no '=' found")
                continue

            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()

            # Remove quotes if present
            if value.startswith('"') and value.endswith('"'):
                value = value[1:-1]
            elif value.startswith("'") and value.endswith("'"):
                value = value[1:-1]

            # Only set if not already defined (env vars take precedence)
            if key not in os.environ:
                os.environ[key] = value
