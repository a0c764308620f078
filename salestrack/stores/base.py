"""
Tabular store protocol.

A store is a set of named tables of untyped cells, read by A1-style ranges.
Adapters: Google Sheets over HTTP (sheets.py) and DuckDB (duckdb_store.py).
"""
import re
from dataclasses import dataclass
from typing import List, Optional, Protocol, runtime_checkable

from salestrack.exceptions import ValidationError

Row = List[str]

_RANGE_RE = re.compile(r"^([A-Za-z]+)(\d+)?(?::([A-Za-z]+)(\d+)?)?$")


@runtime_checkable
class TabularStore(Protocol):
    """What the analytics layer needs from a store."""

    async def list_tables(self) -> List[str]:
        ...

    async def read_rows(self, table: str, range_spec: str) -> List[Row]:
        """
        Read a rectangular range of one table.

        Raises:
            TableNotFoundError: If the table does not exist
        """
        ...


def column_index(letters: str) -> int:
    """Zero-based index of a column letter ("A" -> 0, "P" -> 15, "AA" -> 26)."""
    index = 0
    for ch in letters.upper():
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


@dataclass(frozen=True)
class CellRange:
    """
    Parsed A1 range. Rows are 1-based as in a spreadsheet; row 1 is the
    header row. `last_row` / `last_col` are None when open-ended.
    """
    first_col: int
    first_row: int
    last_col: Optional[int] = None
    last_row: Optional[int] = None

    def clip(self, row: Row) -> Row:
        end = None if self.last_col is None else self.last_col + 1
        return list(row[self.first_col:end])


def parse_range(range_spec: str) -> CellRange:
    """
    Parse "A2:P", "A1:I10" or "B3" into a CellRange.

    Raises:
        ValidationError: If the range is not A1 notation
    """
    match = _RANGE_RE.match((range_spec or "").strip())
    if not match:
        raise ValidationError("range_spec", "Expected A1 notation like 'A2:P'", value=range_spec)

    first_col, first_row, last_col, last_row = match.groups()
    return CellRange(
        first_col=column_index(first_col),
        first_row=int(first_row) if first_row else 1,
        last_col=column_index(last_col) if last_col else None,
        last_row=int(last_row) if last_row else None,
    )
