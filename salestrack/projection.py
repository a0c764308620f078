"""
Row projection: positional table rows -> typed records.

The store has no schema. A row is a flat list of cells, and column meaning is
fixed per table family. Layouts are described as data (`ColumnLayout`), so
the daily period tables and the master customer table are each one constant
here rather than index literals scattered through the queries.
"""
import json
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from salestrack.canonical import canonicalize
from salestrack.config import config
from salestrack.models import (
    MasterCustomerRow,
    PeriodTable,
    PurchaseHistoryEntry,
    Shift,
    TransactionRecord,
    UNASSIGNED_DELIVERY_PERSON,
)
from salestrack.observability import get_logger
from salestrack.periods import parse_period_date

logger = get_logger(__name__)

_NON_NUMERIC_RE = re.compile(r"[^\d.\-]")
_NUMERIC_PREFIX_RE = re.compile(r"-?(?:\d+\.?\d*|\.\d+)")


def coerce_number(value: Any) -> float:
    """
    Coerce a cell to a number.

    Every character that is not a digit, sign or decimal point is dropped,
    then the longest leading number is parsed ("₹1,250/-" -> 1250.0).
    Anything without a leading number gives 0.0.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0

    cleaned = _NON_NUMERIC_RE.sub("", str(value))
    match = _NUMERIC_PREFIX_RE.match(cleaned)
    if not match:
        return 0.0
    number = float(match.group())
    return number if math.isfinite(number) else 0.0


def coerce_text(value: Any) -> str:
    """Trimmed string; absent cells become ""."""
    if value is None:
        return ""
    return str(value).strip()


# ═══════════════════════════════════════════════════════════════════════════════
# LAYOUTS
# ═══════════════════════════════════════════════════════════════════════════════

class FieldKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"


@dataclass(frozen=True)
class FieldSpec:
    """One named column of a layout."""
    name: str
    index: int
    kind: FieldKind = FieldKind.TEXT

    def extract(self, row: Sequence[Any]) -> Any:
        cell = row[self.index] if self.index < len(row) else None
        if self.kind == FieldKind.NUMBER:
            return coerce_number(cell)
        return coerce_text(cell)


@dataclass(frozen=True)
class ColumnLayout:
    """Ordered list of named field extractors for one table family."""
    name: str
    fields: tuple

    def extract(self, row: Sequence[Any]) -> Dict[str, Any]:
        """Read every field of the layout from a row."""
        return {spec.name: spec.extract(row) for spec in self.fields}

    def index_of(self, field_name: str) -> int:
        for spec in self.fields:
            if spec.name == field_name:
                return spec.index
        raise KeyError(field_name)

    @property
    def width(self) -> int:
        return max(spec.index for spec in self.fields) + 1


def _layout(name: str, columns: Iterable[tuple]) -> ColumnLayout:
    return ColumnLayout(
        name=name,
        fields=tuple(FieldSpec(col, idx, kind) for idx, (col, kind) in enumerate(columns)),
    )


_T, _N = FieldKind.TEXT, FieldKind.NUMBER

# Daily period tables, columns A..P
DAILY_LAYOUT = _layout("daily", [
    ("date", _T),
    ("shop_name", _T),
    ("phone", _T),
    ("packet_price", _N),
    ("sale_qty", _N),
    ("sample_qty", _N),
    ("return_qty", _N),
    ("sale_amount", _N),
    ("sample_amount", _N),
    ("return_amount", _N),
    ("shift", _T),
    ("address", _T),
    ("rep", _N),
    ("delivery_person", _T),
    ("payment_status", _T),
    ("balance_amount", _N),
])

# Daily period tables written without the phone column, columns A..O
COMPACT_DAILY_LAYOUT = _layout("daily_compact", [
    (spec.name, spec.kind) for spec in DAILY_LAYOUT.fields if spec.name != "phone"
])

# Master customer table, columns A..I
MASTER_CUSTOMER_LAYOUT = _layout("master_customers", [
    ("customer_name", _T),
    ("normalized_name", _T),
    ("address", _T),
    ("purchase_count", _N),
    ("total_spent", _N),
    ("last_purchase_date", _T),
    ("purchase_history", _T),
    ("flag", _T),
    ("last_modified", _T),
])

LAYOUTS = {
    "standard": DAILY_LAYOUT,
    "compact": COMPACT_DAILY_LAYOUT,
}


def daily_layout(name: Optional[str] = None) -> ColumnLayout:
    """The configured daily layout (standard unless DAILY_LAYOUT says otherwise)."""
    return LAYOUTS.get(name or config.analytics.daily_layout, DAILY_LAYOUT)


# ═══════════════════════════════════════════════════════════════════════════════
# PROJECTION
# ═══════════════════════════════════════════════════════════════════════════════

def project(
    row: Sequence[Any],
    layout: ColumnLayout = DAILY_LAYOUT,
    table: Optional[PeriodTable] = None,
) -> Optional[TransactionRecord]:
    """
    Project one daily row into a TransactionRecord.

    The table's own date and shift win over the row's cells: a row belongs to
    the period of the table it was written to. Rows without a shop name (or
    whose name is pure punctuation) are dropped (None).
    """
    values = layout.extract(row)
    shop_name = values["shop_name"]
    key = canonicalize(shop_name)
    if not key:
        return None

    if table is not None:
        row_date = table.date
        shift = table.shift or Shift.parse(values["shift"])
    else:
        row_date = parse_period_date(values["date"])
        shift = Shift.parse(values["shift"])

    return TransactionRecord(
        key=key,
        shop_name=shop_name,
        date=row_date,
        shift=shift,
        packet_price=values["packet_price"],
        sale_qty=values["sale_qty"],
        sample_qty=values["sample_qty"],
        return_qty=values["return_qty"],
        sale_amount=values["sale_amount"],
        sample_amount=values["sample_amount"],
        return_amount=values["return_amount"],
        delivery_person=values["delivery_person"] or UNASSIGNED_DELIVERY_PERSON,
        address=values["address"],
        payment_status=values["payment_status"],
        phone=values.get("phone", ""),
        balance_amount=values["balance_amount"],
    )


def project_rows(
    rows: Iterable[Sequence[Any]],
    layout: ColumnLayout = DAILY_LAYOUT,
    table: Optional[PeriodTable] = None,
) -> List[TransactionRecord]:
    """Project a table's rows, dropping the ones without a shop name."""
    records = []
    dropped = 0
    for row in rows:
        record = project(row, layout, table)
        if record is None:
            dropped += 1
            continue
        records.append(record)

    if dropped:
        logger.debug(
            "Dropped rows without shop name",
            extra={"table": table.name if table else None, "dropped": dropped}
        )
    return records


def _parse_history(raw: str) -> tuple:
    if not raw:
        return ()
    try:
        entries = json.loads(raw)
    except (ValueError, TypeError):
        return ()
    if not isinstance(entries, list):
        return ()

    history = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        amount = entry.get("amount", entry.get("totalAmount"))
        history.append(PurchaseHistoryEntry(
            date=parse_period_date(coerce_text(entry.get("date"))),
            amount=coerce_number(amount),
        ))
    return tuple(history)


def project_master(
    row: Sequence[Any],
    layout: ColumnLayout = MASTER_CUSTOMER_LAYOUT,
) -> Optional[MasterCustomerRow]:
    """Project one master customer row; rows without a name are dropped."""
    values = layout.extract(row)
    name = values["customer_name"]
    if not name:
        return None

    return MasterCustomerRow(
        customer_name=name,
        key=values["normalized_name"] or canonicalize(name),
        address=values["address"],
        purchase_count=int(values["purchase_count"]),
        total_spent=values["total_spent"],
        last_purchase_date=values["last_purchase_date"],
        purchase_history=_parse_history(values["purchase_history"]),
    )
