"""
Period table discovery and date handling.

Transactions are written to one table per day and shift, named
"DD-MM-YYYY-Shift" (e.g. "23-10-2025-Morning"). The set of tables grows every
day, so queries discover them by name instead of keeping an index.
"""
import re
from datetime import date
from typing import Iterable, List, Optional

from salestrack.config import config
from salestrack.models import DATE_FORMAT, PatternKind, PeriodTable, Shift

_DATE_SHIFT_RE = re.compile(r"^(\d{2})-(\d{2})-(\d{4})-(Morning|Evening)$", re.IGNORECASE)
_DATED_RE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{2}|\d{4})(?:-(.*))?$")

_DMY_EXACT_RE = re.compile(r"^(\d{1,2})[/.-](\d{1,2})[/.-](\d{2}|\d{4})$")

# Free-text dates as they come back from OCR or operator input
_DMY_RE = re.compile(r"(?<!\d)(\d{1,2})[/.-](\d{1,2})[/.-](\d{4}|\d{2})(?!\d)")
_YMD_RE = re.compile(r"(?<!\d)(\d{4})[/.-](\d{1,2})[/.-](\d{1,2})(?!\d)")

_SHIFT_ORDER = {Shift.MORNING: 0, Shift.EVENING: 1}


def expand_year(year: str, pivot: Optional[int] = None) -> int:
    """
    Expand a two-digit year: yy <= pivot -> 20yy, yy > pivot -> 19yy.

    Four-digit years pass through unchanged.
    """
    value = int(year)
    if len(year) != 2:
        return value
    pivot = config.analytics.two_digit_year_pivot if pivot is None else pivot
    return 1900 + value if value > pivot else 2000 + value


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_period_date(text: str, pivot: Optional[int] = None) -> Optional[date]:
    """
    Parse a day-month-year string ("01-06-2025", "1-6-25").

    Returns None for anything that is not a real calendar date.
    """
    if not text:
        return None
    match = _DMY_EXACT_RE.match(str(text).strip())
    if not match:
        return None
    day, month, year = match.groups()
    return _safe_date(expand_year(year, pivot), int(month), int(day))


def format_period_date(value: date) -> str:
    """Format a date the way period tables store it (DD-MM-YYYY)."""
    return value.strftime(DATE_FORMAT)


def normalize_date_text(text: str) -> str:
    """
    Normalize a free-text date to DD-MM-YYYY.

    Accepts D/M/YY, DD-MM-YYYY and YYYY-MM-DD shapes. Text that does not
    hold a valid date is returned trimmed but otherwise unchanged.
    """
    value = str(text or "").strip()
    if not value:
        return ""

    match = _YMD_RE.search(value)
    if match:
        year, month, day = match.groups()
        parsed = _safe_date(int(year), int(month), int(day))
        if parsed:
            return format_period_date(parsed)

    match = _DMY_RE.search(value)
    if match:
        day, month, year = match.groups()
        parsed = _safe_date(expand_year(year), int(month), int(day))
        if parsed:
            return format_period_date(parsed)
    return value


def period_table_name(day: date, shift: Shift) -> str:
    """Name of the period table for one date and shift."""
    return f"{format_period_date(day)}-{shift.value}"


def match_table(name: str, kind: PatternKind = PatternKind.DATE_SHIFT) -> Optional[PeriodTable]:
    """Parse one table name, or None if it is not a period table."""
    if not name:
        return None

    if kind == PatternKind.DATE_SHIFT:
        match = _DATE_SHIFT_RE.match(name)
        if not match:
            return None
        day, month, year, shift = match.groups()
        parsed = _safe_date(int(year), int(month), int(day))
        return PeriodTable(name=name, date=parsed, shift=Shift.parse(shift)) if parsed else None

    match = _DATED_RE.match(name)
    if not match:
        return None
    day, month, year, suffix = match.groups()
    parsed = _safe_date(expand_year(year), int(month), int(day))
    if parsed is None:
        return None
    return PeriodTable(name=name, date=parsed, shift=Shift.parse(suffix))


def locate(
    table_names: Iterable[str],
    kind: PatternKind = PatternKind.DATE_SHIFT,
) -> List[PeriodTable]:
    """
    Pick the period tables out of a store's table list.

    Names that do not follow the convention, or whose date does not exist
    (e.g. "32-01-2025-Morning"), are skipped silently. The result is ordered
    by date, then shift (morning first), then name.
    """
    tables = [t for t in (match_table(name, kind) for name in table_names) if t]
    return sorted(
        tables,
        key=lambda t: (t.date, _SHIFT_ORDER.get(t.shift, -1), t.name),
    )
