# catalog_service/config.py

"""
Configuration for the Catalog Service.

Settings are read from environment variables, optionally seeded from a `.env`
file. Connection strings and admin credentials have no defaults and must be
provided explicitly.
"""

import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

from dotenv import load_dotenv

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024
DEFAULT_MAX_IMAGES = 4


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_required_env(key: str) -> str:
    """Get required environment variable or raise ConfigurationError."""
    value = os.environ.get(key)
    if not value:
        raise ConfigurationError(
            f"Required environment variable '{key}' is not set. "
            f"Please export it or add it to your .env file."
        )
    return value


def _get_optional_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get optional environment variable with default."""
    return os.environ.get(key, default)


def _get_int_env(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"Environment variable '{key}' must be an integer, got '{raw}'.")


def _get_float_env(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"Environment variable '{key}' must be a number, got '{raw}'.")


def _get_bool_env(key: str, default: bool = False) -> bool:
    raw = os.environ.get(key)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    """Application settings container."""
    database_url: str
    admin_username: str
    admin_password: str
    media_root: str = "uploads"
    media_url_prefix: str = "/uploads"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    max_images_per_product: int = DEFAULT_MAX_IMAGES
    purge_media_on_delete: bool = False
    db_connect_retries: int = 10
    db_connect_retry_delay: float = 5.0
    cors_allow_origins: Tuple[str, ...] = ("*",)
    log_level: str = "INFO"


def _split_origins(raw: str) -> List[str]:
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def load_settings() -> Settings:
    """
    Load and validate the service configuration.

    Returns:
        Settings: Validated configuration.

    Raises:
        ConfigurationError: If required configuration is missing or malformed.
    """
    load_dotenv()

    settings = Settings(
        database_url=_get_required_env("DATABASE_URL"),
        admin_username=_get_required_env("ADMIN_USERNAME"),
        admin_password=_get_required_env("ADMIN_PASSWORD"),
        media_root=_get_optional_env("MEDIA_ROOT", "uploads"),
        media_url_prefix=_get_optional_env("MEDIA_URL_PREFIX", "/uploads").rstrip("/") or "/uploads",
        max_upload_bytes=_get_int_env("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
        max_images_per_product=_get_int_env("MAX_IMAGES_PER_PRODUCT", DEFAULT_MAX_IMAGES),
        purge_media_on_delete=_get_bool_env("PURGE_MEDIA_ON_DELETE", False),
        db_connect_retries=_get_int_env("DB_CONNECT_RETRIES", 10),
        db_connect_retry_delay=_get_float_env("DB_CONNECT_RETRY_DELAY", 5.0),
        cors_allow_origins=tuple(_split_origins(_get_optional_env("CORS_ALLOW_ORIGINS", "*"))),
        log_level=_get_optional_env("LOG_LEVEL", "INFO").upper(),
    )

    if settings.max_upload_bytes <= 0:
        raise ConfigurationError("MAX_UPLOAD_BYTES must be greater than 0.")
    if settings.max_images_per_product < 0:
        raise ConfigurationError("MAX_IMAGES_PER_PRODUCT must be non-negative.")
    if settings.db_connect_retries < 1:
        raise ConfigurationError("DB_CONNECT_RETRIES must be at least 1.")
    return settings
