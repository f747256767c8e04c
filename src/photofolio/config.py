"""Configuration management for photofolio.

Values come from environment variables, with Streamlit secrets as a fallback
when the app runs under Streamlit.
"""

import os
from typing import Any

try:
    import streamlit as st

    STREAMLIT_AVAILABLE = True
except ImportError:
    STREAMLIT_AVAILABLE = False

from .errors import ConfigurationError
from .logging_config import get_logger

logger = get_logger(__name__)


class Config:
    """Centralized configuration management using environment variables."""

    def __init__(self):
        self._cache = {}

    def get(self, key: str, default: Any = None, cast_type: type = str) -> Any:
        """Get configuration value from environment variables or Streamlit secrets.

        Args:
            key: Configuration key
            default: Default value if not found
            cast_type: Type to cast the value to (str, int, bool, float)

        Returns:
            Configuration value cast to the specified type
        """
        cache_key = f"{key}:{cast_type.__name__}"
        if cache_key in self._cache:
            return self._cache[cache_key]

        value = os.getenv(key)

        if value is None and STREAMLIT_AVAILABLE:
            try:
                value = st.secrets.get(key)
            except Exception:  # nosec B110
                # No secrets file or not running inside Streamlit
                pass

        if value is None:
            value = default

        if value is not None:
            try:
                if cast_type is bool:
                    if isinstance(value, str):
                        value = value.lower() in ("true", "1", "yes", "on")  # type: ignore[assignment]
                    else:
                        value = bool(value)  # type: ignore[assignment]
                elif cast_type is not str:
                    value = cast_type(value)
            except (ValueError, TypeError) as e:
                logger.warning("config_cast_failed", key=key, cast_type=cast_type.__name__, error=str(e))
                value = default

        self._cache[cache_key] = value
        return value

    def get_required(self, key: str, cast_type: type = str) -> Any:
        """Get required configuration value.

        Raises:
            ConfigurationError: If the required configuration is not found
        """
        value = self.get(key, cast_type=cast_type)
        if value is None or value == "":
            raise ConfigurationError(f"Required configuration '{key}' not found", details={"key": key})
        return value

    def is_development(self) -> bool:
        """Check if running in development mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["development", "dev", "local", "test"]

    def is_production(self) -> bool:
        """Check if running in production mode."""
        environment = self.get("ENVIRONMENT", "development").lower()
        return environment in ["production", "prod"]

    def clear_cache(self):
        """Clear configuration cache."""
        self._cache.clear()


_config: Config | None = None


def get_config() -> Config:
    """Get the process-wide configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_env(key: str, default: Any = None, cast_type: type = str) -> Any:
    """Get a configuration value with type casting."""
    return get_config().get(key, default, cast_type)


def get_environment() -> str:
    """Get current environment."""
    return str(get_env("ENVIRONMENT", "development"))


def get_debug_mode() -> bool:
    """Get debug mode setting."""
    return get_env("DEBUG", False, bool) or get_config().is_development()


def get_database_path() -> str:
    """Get the DuckDB document store path."""
    return str(get_env("PHOTOFOLIO_DB_PATH", "photofolio.duckdb"))


def get_photos_bucket() -> str | None:
    """Get the GCS bucket holding photo and variant blobs."""
    return get_env("GCS_PHOTOS_BUCKET")


def get_project_id() -> str | None:
    """Get Google Cloud project ID."""
    return get_env("GOOGLE_CLOUD_PROJECT")


def get_protected_user() -> str:
    """Get the name of the account that can never be deleted."""
    return str(get_env("PROTECTED_USER", "star"))


def get_bcrypt_rounds() -> int:
    """Get the bcrypt cost factor for new password hashes."""
    return int(get_env("BCRYPT_ROUNDS", 12, int))


def get_delete_max_workers() -> int:
    """Get the fan-out width for parallel document deletes."""
    return max(1, int(get_env("DELETE_MAX_WORKERS", 8, int)))
