"""
SalesTrack analytics engine.

Turns per-day, per-shift delivery tables into customer and sales analytics:
- canonical: shop-name identity keys
- periods: period table discovery and date handling
- projection: positional rows -> typed records
- aggregation: customer and time-bucket folds
- classification: segments, rankings, delivery groupings
- extraction: OCR result parsing and sanity checks
- analytics_service: async query facade over a tabular store
"""

# Import in dependency order
from salestrack.exceptions import (
    StoreError,
    StoreConnectionError,
    StoreAPIError,
    StoreDataError,
    TableNotFoundError,
    ValidationError,
    ConfigurationError,
)

from salestrack.config import config, validate_config

from salestrack.canonical import canonicalize, are_equivalent

from salestrack.periods import (
    locate,
    parse_period_date,
    format_period_date,
    normalize_date_text,
    period_table_name,
)

from salestrack.projection import (
    DAILY_LAYOUT,
    COMPACT_DAILY_LAYOUT,
    MASTER_CUSTOMER_LAYOUT,
    coerce_number,
    project,
    project_rows,
    project_master,
)

from salestrack.aggregation import (
    aggregate,
    fold_customers,
    fold_single_day,
    fold_buckets,
    seed_daily_buckets,
    seed_monthly_buckets,
)

from salestrack.extraction import parse_extraction, sanitize, to_daily_row

from salestrack.analytics_service import AnalyticsService

__version__ = config.version

__all__ = [
    # Exceptions
    "StoreError",
    "StoreConnectionError",
    "StoreAPIError",
    "StoreDataError",
    "TableNotFoundError",
    "ValidationError",
    "ConfigurationError",
    # Config
    "config",
    "validate_config",
    # Canonical keys
    "canonicalize",
    "are_equivalent",
    # Periods
    "locate",
    "parse_period_date",
    "format_period_date",
    "normalize_date_text",
    "period_table_name",
    # Projection
    "DAILY_LAYOUT",
    "COMPACT_DAILY_LAYOUT",
    "MASTER_CUSTOMER_LAYOUT",
    "coerce_number",
    "project",
    "project_rows",
    "project_master",
    # Aggregation
    "aggregate",
    "fold_customers",
    "fold_single_day",
    "fold_buckets",
    "seed_daily_buckets",
    "seed_monthly_buckets",
    # Extraction
    "parse_extraction",
    "sanitize",
    "to_daily_row",
    # Service
    "AnalyticsService",
]
