"""
Centralized configuration for the SalesTrack analytics engine.

This module provides a single source of truth for all configuration values.
Configuration is loaded from environment variables with sensible defaults.

Usage:
    from salestrack.config import config

    spreadsheet_id = config.store.spreadsheet_id
    window = config.analytics.daily_window_days
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from salestrack.exceptions import ConfigurationError

# Load environment variables
load_dotenv()


STORE_BACKENDS = ("sheets", "duckdb")
DAILY_LAYOUTS = ("standard", "compact")


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class StoreConfig:
    """Tabular store configuration."""

    backend: str = field(default_factory=lambda: os.getenv("STORE_BACKEND", "sheets").strip().lower())
    spreadsheet_id: str = field(default_factory=lambda: os.getenv("GOOGLE_SPREADSHEET_ID", ""))
    access_token: str = field(default_factory=lambda: os.getenv("GOOGLE_SHEETS_TOKEN", ""))
    base_url: str = field(
        default_factory=lambda: os.getenv("SHEETS_BASE_URL", "https://sheets.googleapis.com/v4")
    )
    duckdb_path: str = field(default_factory=lambda: os.getenv("DUCKDB_PATH", ":memory:"))
    request_timeout: float = 30.0
    max_concurrent_fetches: int = 5

    # Table naming and ranges
    master_table: str = "MasterCustomers"
    master_range: str = "A2:I"
    period_range: str = "A2:P"


@dataclass(frozen=True)
class AnalyticsConfig:
    """Aggregation windows and ranking limits."""

    daily_window_days: int = 30
    monthly_window_months: int = 6
    top_buyers_limit: int = 20
    new_customer_days: int = 30
    active_customer_days: int = 60
    top_customers_limit: int = 5
    # yy <= pivot -> 20yy, yy > pivot -> 19yy
    two_digit_year_pivot: int = 50
    daily_layout: str = field(
        default_factory=lambda: os.getenv("DAILY_LAYOUT", "standard").strip().lower()
    )


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    json_format: bool = field(default_factory=lambda: _env_bool("LOG_JSON"))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "0.3.0"
    store: StoreConfig = field(default_factory=StoreConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global config instance
config = AppConfig()


def validate_config(app_config: AppConfig = None) -> None:
    """
    Validate that all required configuration is present.

    Call this on application startup to fail fast with clear error messages
    instead of cryptic runtime failures.

    Raises:
        ConfigurationError: If required configuration is missing
    """
    app_config = app_config or config
    store = app_config.store
    analytics = app_config.analytics
    errors = []

    if store.backend not in STORE_BACKENDS:
        errors.append(f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)} (got {store.backend!r})")

    if store.backend == "sheets":
        if not store.spreadsheet_id:
            errors.append("GOOGLE_SPREADSHEET_ID is required but not set")
        if not store.access_token:
            errors.append("GOOGLE_SHEETS_TOKEN is required but not set")

    if store.max_concurrent_fetches < 1:
        errors.append("max_concurrent_fetches must be at least 1")

    if analytics.daily_layout not in DAILY_LAYOUTS:
        errors.append(f"DAILY_LAYOUT must be one of {', '.join(DAILY_LAYOUTS)} (got {analytics.daily_layout!r})")

    if analytics.daily_window_days < 1 or analytics.monthly_window_months < 1:
        errors.append("Trend windows must be positive")

    if analytics.new_customer_days < 1 or analytics.active_customer_days < 1:
        errors.append("Customer activity windows must be positive")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
