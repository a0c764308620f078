"""
Domain models for delivery transactions and their aggregates.

Provides type-safe dataclasses for period tables, transaction rows, customer
aggregates, time buckets and delivery groupings. Every result type exposes
`to_dict()` producing JSON-serializable output with camelCase keys, which is
the shape the dashboard consumes.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, List, Dict, Any, Tuple


UNASSIGNED_DELIVERY_PERSON = "Unassigned"

DATE_FORMAT = "%d-%m-%Y"


def _fmt(value: Optional[date]) -> str:
    return value.strftime(DATE_FORMAT) if value else ""


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════════

class Shift(str, Enum):
    """Sub-period of a delivery day."""
    MORNING = "Morning"
    EVENING = "Evening"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Shift"]:
        """Case-insensitive lookup; None when the label is unknown."""
        if not value:
            return None
        wanted = value.strip().lower()
        for shift in cls:
            if shift.value.lower() == wanted:
                return shift
        return None


class PatternKind(str, Enum):
    """Naming conventions recognised for period tables."""
    # DD-MM-YYYY-Morning / DD-MM-YYYY-Evening only
    DATE_SHIFT = "date_shift"
    # Any name starting with a day-month-year date, shift optional
    DATED = "dated"


class Granularity(str, Enum):
    """Time bucket granularity for trend series."""
    DAY = "day"
    MONTH = "month"


# ═══════════════════════════════════════════════════════════════════════════════
# STORE-FACING RECORDS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PeriodTable:
    """A table holding one day's (and optionally one shift's) transactions."""
    name: str
    date: date
    shift: Optional[Shift] = None

    @property
    def date_label(self) -> str:
        return _fmt(self.date)


@dataclass(frozen=True)
class TransactionRecord:
    """One row of one period table."""
    key: str
    shop_name: str
    date: Optional[date] = None
    shift: Optional[Shift] = None
    packet_price: float = 0.0
    sale_qty: float = 0.0
    sample_qty: float = 0.0
    return_qty: float = 0.0
    sale_amount: float = 0.0
    sample_amount: float = 0.0
    return_amount: float = 0.0
    delivery_person: str = UNASSIGNED_DELIVERY_PERSON
    address: str = ""
    payment_status: str = ""
    phone: str = ""
    balance_amount: float = 0.0

    @property
    def is_cash(self) -> bool:
        """Payment was collected (status 'cash' or 'paid', any casing)."""
        return self.payment_status.strip().lower() in {"cash", "paid"}

    @property
    def has_delivery_person(self) -> bool:
        return self.delivery_person != UNASSIGNED_DELIVERY_PERSON


@dataclass(frozen=True)
class PurchaseHistoryEntry:
    """One entry of a master customer's stored purchase history."""
    date: Optional[date]
    amount: float


@dataclass(frozen=True)
class MasterCustomerRow:
    """One row of the long-lived master customer table."""
    customer_name: str
    key: str
    address: str = ""
    purchase_count: int = 0
    total_spent: float = 0.0
    last_purchase_date: str = ""
    purchase_history: Tuple[PurchaseHistoryEntry, ...] = ()


# ═══════════════════════════════════════════════════════════════════════════════
# AGGREGATION RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CustomerAggregate:
    """All-time totals for one canonical shop key."""
    key: str
    shop_name: str
    address: str = ""
    visit_count: int = 0
    total_sale: float = 0.0
    sale_qty: float = 0.0
    sample_qty: float = 0.0
    sample_amount: float = 0.0
    return_qty: float = 0.0
    return_amount: float = 0.0
    dates: Tuple[date, ...] = ()
    first_purchase_date: Optional[date] = None
    last_purchase_date: Optional[date] = None

    @property
    def is_repeat(self) -> bool:
        return self.visit_count > 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "key": self.key,
            "shopName": self.shop_name,
            "address": self.address,
            "visitCount": self.visit_count,
            "totalSale": round(self.total_sale, 2),
            "saleQty": self.sale_qty,
            "sampleQty": self.sample_qty,
            "sampleAmount": round(self.sample_amount, 2),
            "returnQty": self.return_qty,
            "returnAmount": round(self.return_amount, 2),
            "dates": [_fmt(d) for d in self.dates],
            "firstPurchaseDate": _fmt(self.first_purchase_date),
            "lastPurchaseDate": _fmt(self.last_purchase_date),
        }


@dataclass(frozen=True)
class DailyCustomerEntry:
    """One customer's transactions on a single date, shifts merged."""
    key: str
    shop_name: str
    date: date
    address: str = ""
    shifts: Tuple[Shift, ...] = ()
    rows: int = 0
    sale_qty: float = 0.0
    sale_amount: float = 0.0
    sample_qty: float = 0.0
    sample_amount: float = 0.0
    return_qty: float = 0.0
    return_amount: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "key": self.key,
            "shopName": self.shop_name,
            "date": _fmt(self.date),
            "address": self.address,
            "shifts": [s.value for s in self.shifts],
            "saleQty": self.sale_qty,
            "totalSale": round(self.sale_amount, 2),
            "sampleQty": self.sample_qty,
            "sampleAmount": round(self.sample_amount, 2),
            "returnQty": self.return_qty,
            "returnAmount": round(self.return_amount, 2),
        }


@dataclass(frozen=True)
class TimeBucket:
    """A fixed day or month slot of a trailing trend window."""
    start: date
    granularity: Granularity
    total: float = 0.0
    count: int = 0

    @property
    def label(self) -> str:
        if self.granularity == Granularity.MONTH:
            return self.start.strftime("%b %Y")
        return _fmt(self.start)

    @property
    def average(self) -> float:
        return self.total / self.count if self.count else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "periodLabel": self.label,
            "total": round(self.total, 2),
            "count": self.count,
        }


@dataclass(frozen=True)
class AggregationResult:
    """Output of one aggregation pass."""
    by_customer: Dict[str, CustomerAggregate] = field(default_factory=dict)
    by_bucket: Dict[date, TimeBucket] = field(default_factory=dict)


@dataclass(frozen=True)
class DeliveryShop:
    """A shop served by one delivery person in one period table."""
    shop_name: str
    address: str = ""
    sale_qty: float = 0.0
    sale_amount: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "shopName": self.shop_name,
            "address": self.address,
            "saleQty": self.sale_qty,
            "saleAmount": round(self.sale_amount, 2),
        }


@dataclass(frozen=True)
class DeliveryGroup:
    """Shops grouped under one delivery person."""
    delivery_person: str
    shops: Tuple[DeliveryShop, ...] = ()

    @property
    def total_shops(self) -> int:
        return len(self.shops)

    @property
    def total_sale_amount(self) -> float:
        return sum(shop.sale_amount for shop in self.shops)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deliveryPerson": self.delivery_person,
            "shops": [shop.to_dict() for shop in self.shops],
            "totalShops": self.total_shops,
            "totalSaleAmount": round(self.total_sale_amount, 2),
        }


@dataclass(frozen=True)
class ReconciliationTotals:
    """Running per-delivery-person totals across all period tables."""
    delivery_person: str
    total_orders: int = 0
    total_sale_amount: float = 0.0
    total_cash_amount: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deliveryPerson": self.delivery_person,
            "totalOrders": self.total_orders,
            "totalSaleAmount": round(self.total_sale_amount, 2),
            "totalCashAmount": round(self.total_cash_amount, 2),
        }


@dataclass(frozen=True)
class VisitSegments:
    """New/repeat partition of the all-time customer population."""
    new: List[CustomerAggregate] = field(default_factory=list)
    repeat: List[CustomerAggregate] = field(default_factory=list)
    exactly_two: List[CustomerAggregate] = field(default_factory=list)
    exactly_three: List[CustomerAggregate] = field(default_factory=list)
    four_or_more: List[CustomerAggregate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "twoTimes": [c.to_dict() for c in self.exactly_two],
            "threeTimes": [c.to_dict() for c in self.exactly_three],
            "fourPlusTimes": [c.to_dict() for c in self.four_or_more],
        }


@dataclass(frozen=True)
class RepeatVsNew:
    """Counts of repeat and new customers."""
    repeat: int = 0
    new: int = 0

    @property
    def total(self) -> int:
        return self.repeat + self.new

    def to_dict(self) -> Dict[str, Any]:
        return {"repeat": self.repeat, "new": self.new, "total": self.total}


@dataclass(frozen=True)
class TopCustomer:
    """One entry of the top-spenders ranking; `id` is the master table position."""
    id: int
    name: str
    purchases: int = 0
    total: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "purchases": self.purchases,
            "total": round(self.total, 2),
        }


@dataclass(frozen=True)
class CustomerMetrics:
    """
    Headline customer counts from the master customer table.

    `new` and `active` can overlap (a first purchase last week is both), so
    inactive is what remains after subtracting both, never below zero.
    """
    total: int = 0
    new: int = 0
    active: int = 0
    top_customers: Tuple[TopCustomer, ...] = ()

    @property
    def inactive(self) -> int:
        return max(0, self.total - self.active - self.new)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        return {
            "totalCustomers": self.total,
            "newCustomers": self.new,
            "activeCustomers": self.active,
            "inactiveCustomers": self.inactive,
            "customerMetrics": [
                {"category": "Existing", "value": self.active},
                {"category": "New This Month", "value": self.new},
                {"category": "Inactive", "value": self.inactive},
            ],
            "topCustomers": [c.to_dict() for c in self.top_customers],
        }
