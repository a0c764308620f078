"""
Tabular store adapters.

Usage:
    from salestrack.stores import create_store

    store = create_store()
    names = await store.list_tables()
"""
from typing import Optional

from salestrack.config import AppConfig, config
from salestrack.exceptions import ConfigurationError
from salestrack.stores.base import CellRange, Row, TabularStore, column_index, parse_range
from salestrack.stores.duckdb_store import DuckDBStore
from salestrack.stores.sheets import SheetsStore


def create_store(app_config: Optional[AppConfig] = None) -> TabularStore:
    """Build the store selected by STORE_BACKEND."""
    app_config = app_config or config
    backend = app_config.store.backend

    if backend == "sheets":
        return SheetsStore(store_config=app_config.store)
    if backend == "duckdb":
        return DuckDBStore(app_config.store.duckdb_path)
    raise ConfigurationError(f"Unknown STORE_BACKEND: {backend!r}")


__all__ = [
    "CellRange",
    "DuckDBStore",
    "Row",
    "SheetsStore",
    "TabularStore",
    "column_index",
    "create_store",
    "parse_range",
]
