"""
Aggregation engine: folds transaction records into per-customer and
per-time-bucket aggregates.

Everything here is rebuilt from scratch on each call. There is no shared
state between queries; a fold returns fresh dicts of frozen values.

Two customer folds exist on purpose:
- fold_customers: all-time view, one visit per table row (two shifts on the
  same day are two visits)
- fold_single_day: one date, rows of all shifts merged into one entry per
  customer
"""
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from salestrack.config import config
from salestrack.models import (
    AggregationResult,
    CustomerAggregate,
    DailyCustomerEntry,
    Granularity,
    Shift,
    TimeBucket,
    TransactionRecord,
)


# ═══════════════════════════════════════════════════════════════════════════════
# CUSTOMER FOLDS
# ═══════════════════════════════════════════════════════════════════════════════

class _CustomerAccumulator:
    """Mutable running totals for one key during a single fold."""

    def __init__(self, record: TransactionRecord):
        self.key = record.key
        self.shop_name = record.shop_name
        self.address = ""
        self.visit_count = 0
        self.total_sale = 0.0
        self.sale_qty = 0.0
        self.sample_qty = 0.0
        self.sample_amount = 0.0
        self.return_qty = 0.0
        self.return_amount = 0.0
        self.dates: List[date] = []
        self._seen_dates = set()

    def add(self, record: TransactionRecord) -> None:
        self.visit_count += 1
        self.total_sale += record.sale_amount
        self.sale_qty += record.sale_qty
        self.sample_qty += record.sample_qty
        self.sample_amount += record.sample_amount
        self.return_qty += record.return_qty
        self.return_amount += record.return_amount

        if record.date and record.date not in self._seen_dates:
            self._seen_dates.add(record.date)
            self.dates.append(record.date)

        if not self.shop_name:
            self.shop_name = record.shop_name
        if not self.address and record.address:
            self.address = record.address

    def freeze(self) -> CustomerAggregate:
        dates = tuple(sorted(self.dates))
        return CustomerAggregate(
            key=self.key,
            shop_name=self.shop_name,
            address=self.address,
            visit_count=self.visit_count,
            total_sale=self.total_sale,
            sale_qty=self.sale_qty,
            sample_qty=self.sample_qty,
            sample_amount=self.sample_amount,
            return_qty=self.return_qty,
            return_amount=self.return_amount,
            dates=dates,
            first_purchase_date=dates[0] if dates else None,
            last_purchase_date=dates[-1] if dates else None,
        )


def fold_customers(records: Iterable[TransactionRecord]) -> Dict[str, CustomerAggregate]:
    """
    All-time fold: one CustomerAggregate per canonical key.

    Keys keep first-seen order. First/last purchase dates come from the
    chronologically sorted set of distinct dates, not from row order.
    """
    accumulators: Dict[str, _CustomerAccumulator] = {}
    for record in records:
        acc = accumulators.get(record.key)
        if acc is None:
            acc = accumulators[record.key] = _CustomerAccumulator(record)
        acc.add(record)
    return {key: acc.freeze() for key, acc in accumulators.items()}


def fold_single_day(
    records: Iterable[TransactionRecord],
    day: date,
) -> Dict[str, DailyCustomerEntry]:
    """
    Single-day fold: rows on `day` merged per key across shift tables.

    Two shifts for the same shop on the same date become one entry whose
    amounts are the sums of both rows.
    """
    merged: Dict[str, dict] = {}
    for record in records:
        if record.date != day:
            continue

        entry = merged.get(record.key)
        if entry is None:
            entry = merged[record.key] = {
                "shop_name": record.shop_name,
                "address": "",
                "shifts": [],
                "rows": 0,
                "sale_qty": 0.0,
                "sale_amount": 0.0,
                "sample_qty": 0.0,
                "sample_amount": 0.0,
                "return_qty": 0.0,
                "return_amount": 0.0,
            }

        entry["rows"] += 1
        entry["sale_qty"] += record.sale_qty
        entry["sale_amount"] += record.sale_amount
        entry["sample_qty"] += record.sample_qty
        entry["sample_amount"] += record.sample_amount
        entry["return_qty"] += record.return_qty
        entry["return_amount"] += record.return_amount
        if record.shift and record.shift not in entry["shifts"]:
            entry["shifts"].append(record.shift)
        if not entry["address"] and record.address:
            entry["address"] = record.address

    return {
        key: DailyCustomerEntry(
            key=key,
            date=day,
            shifts=tuple(sorted(values.pop("shifts"), key=list(Shift).index)),
            **values,
        )
        for key, values in merged.items()
    }


# ═══════════════════════════════════════════════════════════════════════════════
# TIME BUCKETS
# ═══════════════════════════════════════════════════════════════════════════════

def _shift_month(start: date, months: int) -> date:
    index = start.year * 12 + (start.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


@dataclass(frozen=True)
class BucketWindow:
    """A trailing window of fixed day or month buckets ending at `end`."""
    granularity: Granularity
    end: date
    length: int

    @classmethod
    def daily(cls, end: Optional[date] = None, days: Optional[int] = None) -> "BucketWindow":
        return cls(
            Granularity.DAY,
            end or date.today(),
            days or config.analytics.daily_window_days,
        )

    @classmethod
    def monthly(cls, end: Optional[date] = None, months: Optional[int] = None) -> "BucketWindow":
        return cls(
            Granularity.MONTH,
            end or date.today(),
            months or config.analytics.monthly_window_months,
        )

    def bucket_start(self, day: date) -> date:
        """Key of the bucket a date falls into (the day, or the 1st of its month)."""
        if self.granularity == Granularity.MONTH:
            return day.replace(day=1)
        return day

    def starts(self) -> List[date]:
        """Bucket keys in chronological order, oldest first."""
        if self.granularity == Granularity.MONTH:
            last = self.end.replace(day=1)
            return [_shift_month(last, -i) for i in reversed(range(self.length))]
        return [self.end - timedelta(days=i) for i in reversed(range(self.length))]


def seed_buckets(window: BucketWindow) -> Dict[date, TimeBucket]:
    """Zero-valued buckets for every slot of the window."""
    return {
        start: TimeBucket(start=start, granularity=window.granularity)
        for start in window.starts()
    }


def seed_daily_buckets(end: Optional[date] = None, days: Optional[int] = None) -> Dict[date, TimeBucket]:
    return seed_buckets(BucketWindow.daily(end, days))


def seed_monthly_buckets(end: Optional[date] = None, months: Optional[int] = None) -> Dict[date, TimeBucket]:
    return seed_buckets(BucketWindow.monthly(end, months))


def fold_buckets(
    points: Iterable[Tuple[Optional[date], float]],
    window: BucketWindow,
) -> Dict[date, TimeBucket]:
    """
    Fold (date, amount) points into a pre-seeded window.

    Points without a date, or outside the window, are ignored. Each point
    inside adds its amount to the bucket total and 1 to its count.
    """
    totals = {start: [0.0, 0] for start in window.starts()}
    for day, amount in points:
        if day is None:
            continue
        slot = totals.get(window.bucket_start(day))
        if slot is None:
            continue
        slot[0] += amount
        slot[1] += 1

    return {
        start: TimeBucket(start=start, granularity=window.granularity, total=total, count=count)
        for start, (total, count) in totals.items()
    }


def aggregate(
    records: Iterable[TransactionRecord],
    window: Optional[BucketWindow] = None,
) -> AggregationResult:
    """
    All-time customer fold plus, when a window is given, the sale-amount
    trend over that window. `records` may be a one-shot iterator.
    """
    records = list(records)
    by_bucket = {}
    if window is not None:
        by_bucket = fold_buckets(((r.date, r.sale_amount) for r in records), window)
    return AggregationResult(by_customer=fold_customers(records), by_bucket=by_bucket)
