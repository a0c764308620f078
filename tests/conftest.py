"""
Pytest configuration and shared fixtures.
"""
import pytest
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from salestrack.exceptions import StoreConnectionError, TableNotFoundError
from salestrack.models import Shift, TransactionRecord
from salestrack.observability import scan_stats
from salestrack.projection import DAILY_LAYOUT, ColumnLayout


DAILY_HEADER = [
    "Date", "Shop Name", "Phone", "Packet Price", "Sale Qty", "Sample Qty",
    "Return Qty", "Sale Amount", "Sample Amount", "Return Amount", "Shift",
    "Address", "Rep", "Del Person", "Payment Status", "Balance Amount",
]

MASTER_HEADER = [
    "Customer Name", "Normalized Name", "Address", "Purchase Count",
    "Total Spent", "Last Purchase Date", "Purchase History", "Flag", "Last Modified",
]


def make_row(layout: ColumnLayout = DAILY_LAYOUT, **values: Any) -> List[str]:
    """Build a positional row for `layout` from field names."""
    row = [""] * layout.width
    for name, value in values.items():
        row[layout.index_of(name)] = "" if value is None else str(value)
    return row


def make_record(
    shop_name: str,
    key: Optional[str] = None,
    day: Optional[date] = date(2025, 6, 1),
    shift: Optional[Shift] = Shift.MORNING,
    **values: Any,
) -> TransactionRecord:
    """TransactionRecord with sensible defaults for tests."""
    return TransactionRecord(
        key=key or shop_name.lower().replace(" ", ""),
        shop_name=shop_name,
        date=day,
        shift=shift,
        **values,
    )


class FakeStore:
    """
    In-memory TabularStore.

    `tables` maps table name to data rows (header excluded). Tables listed in
    `failing` raise StoreConnectionError on read.
    """

    def __init__(self, tables: Optional[Dict[str, Sequence[Sequence[str]]]] = None, failing=()):
        self.tables = {name: [list(r) for r in rows] for name, rows in (tables or {}).items()}
        self.failing = set(failing)
        self.reads: List[str] = []

    async def list_tables(self) -> List[str]:
        return list(self.tables) + [name for name in self.failing if name not in self.tables]

    async def read_rows(self, table: str, range_spec: str) -> List[List[str]]:
        self.reads.append(table)
        if table in self.failing:
            raise StoreConnectionError("Connection reset", details=table)
        if table not in self.tables:
            raise TableNotFoundError(table)
        return [list(r) for r in self.tables[table]]


@pytest.fixture(autouse=True)
def reset_scan_stats():
    """Scan counters are global; start every test from zero."""
    scan_stats.reset()
    yield
    scan_stats.reset()


@pytest.fixture
def two_shift_store() -> FakeStore:
    """Same shop in both shifts of 01-06-2025, another shop a day later."""
    return FakeStore({
        "01-06-2025-Morning": [
            make_row(shop_name="OM SHARMA", sale_qty=10, sale_amount=100,
                     delivery_person="Ravi", payment_status="Cash", address="Main Road"),
            make_row(shop_name="Gupta Kirana", sale_qty=5, sale_amount=50,
                     sample_qty=2, sample_amount=20, delivery_person="ravi"),
        ],
        "01-06-2025-Evening": [
            make_row(shop_name="Om  Sharma   Shop", sale_qty=5, sale_amount=50,
                     delivery_person="Amit", payment_status="credit"),
        ],
        "02-06-2025-Morning": [
            make_row(shop_name="New Bakery Point", sale_qty=3, sale_amount=30,
                     return_qty=1, return_amount=10, delivery_person=""),
            make_row(shop_name="", sale_qty=99, sale_amount=990),
        ],
        "Summary": [["not", "a", "period", "table"]],
    })


@pytest.fixture
def master_rows() -> List[List[str]]:
    """Master customer table rows (header excluded)."""
    return [
        ["Om Sharma", "omsharma", "Main Road", "3", "450", "01-06-2025",
         '[{"date": "15-04-2025", "amount": 100}, {"date": "01-06-2025", "amount": 150}]',
         "", ""],
        ["Gupta Kirana", "gupta", "", "1", "50", "01-06-2025",
         '[{"date": "01-06-2025", "totalAmount": "50"}]', "", ""],
        ["Broken History", "broken", "", "1", "0", "", "not json", "", ""],
        ["Zero Count", "zero", "", "0", "0", "", "[]", "", ""],
        ["", "", "", "5", "0", "", "", "", ""],
    ]


@pytest.fixture
def row_factory():
    """Positional row builder (see make_row)."""
    return make_row


@pytest.fixture
def record_factory():
    """TransactionRecord builder (see make_record)."""
    return make_record


@pytest.fixture
def store_factory():
    """FakeStore constructor."""
    return FakeStore


@pytest.fixture
def daily_header() -> List[str]:
    return list(DAILY_HEADER)


@pytest.fixture
def master_header() -> List[str]:
    return list(MASTER_HEADER)
