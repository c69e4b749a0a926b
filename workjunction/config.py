"""
Centralized configuration with environment variable overrides.

Storage, slot granularity, pricing and retry settings are configurable
here. Nothing is hardcoded in scheduling or lifecycle logic.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _safe_bool(env_var: str, default: str) -> bool:
    raw = os.getenv(env_var, default).strip().lower()
    if raw in ("1", "true", "yes", "on"):
        return True
    if raw in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"Invalid boolean for {env_var}: {raw!r}")


@dataclass(frozen=True)
class StoreConfig:
    """Database connection and write-retry settings."""

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./workjunction.db")
    echo: bool = _safe_bool("DB_ECHO", "false")
    retry_attempts: int = _safe_int("STORE_RETRY_ATTEMPTS", "3")
    retry_backoff_sec: float = _safe_float("STORE_RETRY_BACKOFF_SEC", "0.05")


@dataclass(frozen=True)
class BookingConfig:
    """Slot granularity, pricing and listing defaults."""

    slot_minutes: int = _safe_int("SLOT_MINUTES", "60")
    weekly_slot_days: int = _safe_int("WEEKLY_SLOT_DAYS", "7")
    tax_rate: float = _safe_float("TAX_RATE", "0.18")
    default_page_size: int = _safe_int("DEFAULT_PAGE_SIZE", "10")


@dataclass(frozen=True)
class ServerConfig:
    """HTTP server settings."""

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = _safe_int("PORT", "8000")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    store: StoreConfig = field(default_factory=StoreConfig)
    booking: BookingConfig = field(default_factory=BookingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    app_name: str = os.getenv("APP_NAME", "workjunction-booking")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    slot_minutes = config.booking.slot_minutes
    if not 5 <= slot_minutes <= 240:
        raise ValueError(f"SLOT_MINUTES must be between 5 and 240, got {slot_minutes}")
    if MINUTES_PER_DAY % slot_minutes != 0:
        raise ValueError(f"SLOT_MINUTES must divide a day evenly, got {slot_minutes}")
    if not 1 <= config.booking.weekly_slot_days <= 31:
        raise ValueError(
            f"WEEKLY_SLOT_DAYS must be between 1 and 31, got {config.booking.weekly_slot_days}"
        )
    if not 0.0 <= config.booking.tax_rate <= 1.0:
        raise ValueError(f"TAX_RATE must be between 0.0 and 1.0, got {config.booking.tax_rate}")
    if not 1 <= config.booking.default_page_size <= 100:
        raise ValueError(
            f"DEFAULT_PAGE_SIZE must be between 1 and 100, got {config.booking.default_page_size}"
        )
    if config.store.retry_attempts < 1:
        raise ValueError(
            f"STORE_RETRY_ATTEMPTS must be >= 1, got {config.store.retry_attempts}"
        )
    if config.store.retry_backoff_sec < 0:
        raise ValueError(
            f"STORE_RETRY_BACKOFF_SEC must be >= 0, got {config.store.retry_backoff_sec}"
        )
    if not 1 <= config.server.port <= 65535:
        raise ValueError(f"PORT must be between 1 and 65535, got {config.server.port}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info("Configuration loaded for '%s'", config.app_name)
    return config


# Singleton instance
settings = load_config()
