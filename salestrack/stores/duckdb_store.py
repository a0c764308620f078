"""
DuckDB-backed tabular store.

Each table is a DuckDB table of VARCHAR columns. Row 1 of a range is the
header (the column names); data starts at row 2, in insertion order.
Used for local mirrors of the spreadsheet and in tests.
"""
import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, List, Optional, Sequence, Union

import duckdb

from salestrack.exceptions import StoreDataError, TableNotFoundError
from salestrack.observability import get_logger
from salestrack.stores.base import Row, parse_range

logger = get_logger(__name__)

# Hidden column keeping sheet row order
_ROW_ID = "__row_id"


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


class DuckDBStore:
    """
    Tabular store over one DuckDB database.

    Usage:
        store = DuckDBStore(":memory:")
        await store.write_table("01-06-2025-Morning", header, rows)
        rows = await store.read_rows("01-06-2025-Morning", "A2:P")
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the database connection."""
        async with self._lock:
            if self._connection is None:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                self._connection = duckdb.connect(self.db_path)
                logger.info(f"DuckDB connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        async with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None
                logger.info("DuckDB connection closed")

    async def __aenter__(self) -> "DuckDBStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @asynccontextmanager
    async def connection(self):
        """Connection guarded by the store lock; DuckDB connections are not task-safe."""
        if self._connection is None:
            await self.connect()
        async with self._lock:
            yield self._connection

    def _columns(self, conn: duckdb.DuckDBPyConnection, table: str) -> List[str]:
        result = conn.execute(
            """
            SELECT column_name FROM information_schema.columns
            WHERE table_schema = 'main' AND table_name = ?
            ORDER BY ordinal_position
            """,
            [table],
        ).fetchall()
        return [name for (name,) in result if name != _ROW_ID]

    async def list_tables(self) -> List[str]:
        async with self.connection() as conn:
            result = conn.execute(
                """
                SELECT table_name FROM information_schema.tables
                WHERE table_schema = 'main'
                ORDER BY table_name
                """
            ).fetchall()
        return [name for (name,) in result]

    async def read_rows(self, table: str, range_spec: str) -> List[Row]:
        cells = parse_range(range_spec)

        async with self.connection() as conn:
            columns = self._columns(conn, table)
            if not columns:
                raise TableNotFoundError(table)

            select = ", ".join(_quote(c) for c in columns)
            data = conn.execute(
                f"SELECT {select} FROM {_quote(table)} ORDER BY {_quote(_ROW_ID)}"
            ).fetchall()

        # sheet rows: header is row 1, data rows follow
        sheet = [list(columns)] + [[_cell(v) for v in row] for row in data]
        start = cells.first_row - 1
        end = cells.last_row if cells.last_row is not None else len(sheet)
        return [cells.clip(row) for row in sheet[start:end]]

    async def write_table(
        self,
        name: str,
        header: Sequence[str],
        rows: Sequence[Sequence[Any]],
    ) -> int:
        """
        Create (or replace) a table and fill it with rows.

        Rows shorter than the header are padded with "". Returns the number of
        rows written.

        Raises:
            StoreDataError: If the header is empty or has duplicate names
        """
        header = [str(h) for h in header]
        if not header:
            raise StoreDataError("Cannot create table without columns", details=name)
        if len({h.lower() for h in header}) != len(header):
            raise StoreDataError("Duplicate column names", details=name, expected="unique", got=str(header))

        width = len(header)
        values = []
        for row_id, row in enumerate(rows):
            cells = [_cell(v) for v in list(row)[:width]]
            cells += [""] * (width - len(cells))
            values.append([row_id] + cells)

        column_sql = ", ".join(
            [f"{_quote(_ROW_ID)} INTEGER"] + [f"{_quote(h)} VARCHAR" for h in header]
        )
        async with self.connection() as conn:
            conn.execute(f"CREATE OR REPLACE TABLE {_quote(name)} ({column_sql})")
            if values:
                placeholders = ", ".join(["?"] * (width + 1))
                conn.executemany(
                    f"INSERT INTO {_quote(name)} VALUES ({placeholders})",
                    values,
                )

        logger.debug(f"Wrote table {name}", extra={"table": name, "rows": len(values)})
        return len(values)

    async def drop_table(self, name: str) -> None:
        async with self.connection() as conn:
            conn.execute(f"DROP TABLE IF EXISTS {_quote(name)}")
