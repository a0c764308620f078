"""
Integration tests for salestrack/stores/duckdb_store.py

Runs against a real in-memory DuckDB database.
"""
import pytest

from salestrack.exceptions import StoreDataError, TableNotFoundError, ValidationError
from salestrack.stores import DuckDBStore, create_store, parse_range
from salestrack.stores.base import CellRange, TabularStore, column_index


HEADER = ["Date", "Shop Name", "Sale"]
ROWS = [
    ["01-06-2025", "Om Sharma", "100"],
    ["01-06-2025", "Gupta", "50"],
    ["01-06-2025", "Short"],
]


class TestParseRange:
    """Tests for A1 range parsing."""

    def test_column_index(self):
        """Column letters map to zero-based indexes."""
        assert column_index("A") == 0
        assert column_index("P") == 15
        assert column_index("Z") == 25
        assert column_index("AA") == 26

    def test_open_ended(self):
        """'A2:P' has no last row."""
        assert parse_range("A2:P") == CellRange(first_col=0, first_row=2, last_col=15, last_row=None)

    def test_bounded(self):
        """'B3:D10' is fully bounded."""
        assert parse_range("B3:D10") == CellRange(first_col=1, first_row=3, last_col=3, last_row=10)

    def test_invalid(self):
        """Non-A1 strings are rejected."""
        with pytest.raises(ValidationError):
            parse_range("2A:P")
        with pytest.raises(ValidationError):
            parse_range("")


class TestDuckDBStore:
    """Tests for DuckDBStore."""

    def test_satisfies_protocol(self):
        """DuckDBStore is a TabularStore."""
        assert isinstance(DuckDBStore(), TabularStore)

    @pytest.mark.asyncio
    async def test_write_and_list(self):
        """Written tables are listed."""
        async with DuckDBStore() as store:
            await store.write_table("01-06-2025-Morning", HEADER, ROWS)
            await store.write_table("MasterCustomers", ["Name"], [])
            assert await store.list_tables() == ["01-06-2025-Morning", "MasterCustomers"]

    @pytest.mark.asyncio
    async def test_read_data_rows(self):
        """'A2:C' returns data rows in insertion order, short rows padded."""
        async with DuckDBStore() as store:
            written = await store.write_table("t", HEADER, ROWS)
            rows = await store.read_rows("t", "A2:C")

        assert written == 3
        assert rows == [
            ["01-06-2025", "Om Sharma", "100"],
            ["01-06-2025", "Gupta", "50"],
            ["01-06-2025", "Short", ""],
        ]

    @pytest.mark.asyncio
    async def test_read_includes_header_from_row_one(self):
        """'A1:B' starts with the header row, clipped to two columns."""
        async with DuckDBStore() as store:
            await store.write_table("t", HEADER, ROWS)
            rows = await store.read_rows("t", "A1:B")

        assert rows[0] == ["Date", "Shop Name"]
        assert rows[1] == ["01-06-2025", "Om Sharma"]

    @pytest.mark.asyncio
    async def test_bounded_rows_and_columns(self):
        """'B2:C3' returns two rows of two columns."""
        async with DuckDBStore() as store:
            await store.write_table("t", HEADER, ROWS)
            rows = await store.read_rows("t", "B2:C3")

        assert rows == [["Om Sharma", "100"], ["Gupta", "50"]]

    @pytest.mark.asyncio
    async def test_range_wider_than_table(self):
        """Columns beyond the table are simply absent."""
        async with DuckDBStore() as store:
            await store.write_table("t", HEADER, ROWS[:1])
            rows = await store.read_rows("t", "A2:P")

        assert rows == [["01-06-2025", "Om Sharma", "100"]]

    @pytest.mark.asyncio
    async def test_missing_table(self):
        """Reading a missing table raises TableNotFoundError."""
        async with DuckDBStore() as store:
            with pytest.raises(TableNotFoundError) as exc_info:
                await store.read_rows("02-06-2025-Morning", "A2:P")
        assert exc_info.value.table == "02-06-2025-Morning"

    @pytest.mark.asyncio
    async def test_overwrite_replaces(self):
        """Writing a table again replaces its rows."""
        async with DuckDBStore() as store:
            await store.write_table("t", HEADER, ROWS)
            await store.write_table("t", HEADER, ROWS[:1])
            rows = await store.read_rows("t", "A2:C")

        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_cells_stringified(self):
        """Non-string values are stored as text; None as ''."""
        async with DuckDBStore() as store:
            await store.write_table("t", HEADER, [["01-06-2025", None, 95.5]])
            rows = await store.read_rows("t", "A2:C")

        assert rows == [["01-06-2025", "", "95.5"]]

    @pytest.mark.asyncio
    async def test_quoted_names(self):
        """Names with quotes and spaces are safe."""
        async with DuckDBStore() as store:
            await store.write_table('Om "Special" Sheet', ['Col "A"'], [["x"]])
            assert await store.read_rows('Om "Special" Sheet', "A2:A") == [["x"]]

    @pytest.mark.asyncio
    async def test_bad_header(self):
        """Empty or duplicate headers are rejected."""
        async with DuckDBStore() as store:
            with pytest.raises(StoreDataError):
                await store.write_table("t", [], [])
            with pytest.raises(StoreDataError):
                await store.write_table("t", ["A", "a"], [])

    @pytest.mark.asyncio
    async def test_drop_table(self):
        """Dropped tables are gone."""
        async with DuckDBStore() as store:
            await store.write_table("t", HEADER, ROWS)
            await store.drop_table("t")
            assert await store.list_tables() == []

    @pytest.mark.asyncio
    async def test_file_database_persists(self, tmp_path):
        """A file-backed store keeps tables across connections."""
        path = tmp_path / "data" / "sales.duckdb"
        async with DuckDBStore(path) as store:
            await store.write_table("t", HEADER, ROWS)
        async with DuckDBStore(path) as store:
            assert await store.list_tables() == ["t"]


class TestCreateStore:
    """Tests for create_store factory."""

    def test_duckdb_backend(self):
        """duckdb backend builds a DuckDBStore."""
        from salestrack.config import AppConfig, StoreConfig

        store = create_store(AppConfig(store=StoreConfig(backend="duckdb", duckdb_path=":memory:")))
        assert isinstance(store, DuckDBStore)

    def test_sheets_backend(self):
        """sheets backend builds a SheetsStore."""
        from salestrack.config import AppConfig, StoreConfig
        from salestrack.stores import SheetsStore

        store = create_store(AppConfig(store=StoreConfig(backend="sheets", spreadsheet_id="abc")))
        assert isinstance(store, SheetsStore)
        assert store.spreadsheet_id == "abc"

    def test_unknown_backend(self):
        """Unknown backends raise ConfigurationError."""
        from salestrack.config import AppConfig, StoreConfig
        from salestrack.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            create_store(AppConfig(store=StoreConfig(backend="excel")))
