"""
Classification layer: segments, rankings and delivery groupings derived from
aggregation output.
"""
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

from salestrack.models import (
    CustomerAggregate,
    CustomerMetrics,
    DailyCustomerEntry,
    DeliveryGroup,
    DeliveryShop,
    MasterCustomerRow,
    ReconciliationTotals,
    RepeatVsNew,
    TopCustomer,
    TransactionRecord,
    UNASSIGNED_DELIVERY_PERSON,
    VisitSegments,
)
from salestrack.periods import parse_period_date


def segment_by_visit_count(customers: Iterable[CustomerAggregate]) -> VisitSegments:
    """
    Partition customers by all-time visit count.

    One visit is new, more is repeat; repeat customers are further split into
    exactly two, exactly three and four or more visits.
    """
    segments = VisitSegments()
    for customer in customers:
        count = customer.visit_count
        if count < 1:
            continue
        if count == 1:
            segments.new.append(customer)
            continue

        segments.repeat.append(customer)
        if count == 2:
            segments.exactly_two.append(customer)
        elif count == 3:
            segments.exactly_three.append(customer)
        else:
            segments.four_or_more.append(customer)
    return segments


def top_by_total(customers: Iterable[CustomerAggregate], n: int) -> List[CustomerAggregate]:
    """Highest total sale first; ties keep their original order."""
    ranked = sorted(customers, key=lambda c: c.total_sale, reverse=True)
    return ranked[:max(n, 0)]


def customers_on_date(
    day_entries: Mapping[str, DailyCustomerEntry],
) -> List[DailyCustomerEntry]:
    """Everyone who bought on the day, in first-seen order."""
    return list(day_entries.values())


def new_on_date(
    customers: Mapping[str, CustomerAggregate],
    day_entries: Mapping[str, DailyCustomerEntry],
    day: date,
) -> List[DailyCustomerEntry]:
    """
    Customers whose first-ever purchase falls on `day`.

    Returned entries carry that day's amounts, not all-time totals.
    """
    return [
        entry for key, entry in day_entries.items()
        if key in customers and customers[key].first_purchase_date == day
    ]


def with_samples(customers: Iterable[CustomerAggregate]) -> List[CustomerAggregate]:
    return [c for c in customers if c.sample_qty > 0]


def with_returns(customers: Iterable[CustomerAggregate]) -> List[CustomerAggregate]:
    return [c for c in customers if c.return_qty > 0]


def _person_sort_key(group: DeliveryGroup):
    unassigned = group.delivery_person == UNASSIGNED_DELIVERY_PERSON
    return (unassigned, group.delivery_person.casefold(), group.delivery_person)


def group_by_delivery_person(records: Iterable[TransactionRecord]) -> List[DeliveryGroup]:
    """
    Group one period table's shops under their delivery person.

    Groups are alphabetical by person, with "Unassigned" always last. Shops
    inside a group are alphabetical by shop name.
    """
    shops: Dict[str, List[DeliveryShop]] = {}
    for record in records:
        shops.setdefault(record.delivery_person, []).append(DeliveryShop(
            shop_name=record.shop_name,
            address=record.address,
            sale_qty=record.sale_qty,
            sale_amount=record.sale_amount,
        ))

    groups = [
        DeliveryGroup(
            delivery_person=person,
            shops=tuple(sorted(person_shops, key=lambda s: (s.shop_name.casefold(), s.shop_name))),
        )
        for person, person_shops in shops.items()
    ]
    return sorted(groups, key=_person_sort_key)


def reconcile_delivery_totals(records: Iterable[TransactionRecord]) -> List[ReconciliationTotals]:
    """
    Per-delivery-person order count, sale total and cash collected.

    Grouping ignores case; the first spelling seen is the one displayed.
    Rows with no delivery person are left out. Sorted by order count,
    highest first.
    """
    totals: Dict[str, dict] = {}
    for record in records:
        if not record.has_delivery_person:
            continue
        key = record.delivery_person.casefold()
        entry = totals.get(key)
        if entry is None:
            entry = totals[key] = {
                "delivery_person": record.delivery_person,
                "total_orders": 0,
                "total_sale_amount": 0.0,
                "total_cash_amount": 0.0,
            }
        entry["total_orders"] += 1
        entry["total_sale_amount"] += record.sale_amount
        if record.is_cash:
            entry["total_cash_amount"] += record.sale_amount

    summary = [ReconciliationTotals(**entry) for entry in totals.values()]
    return sorted(summary, key=lambda t: t.total_orders, reverse=True)


def reconciliation_grand_totals(summary: Iterable[ReconciliationTotals]) -> Dict[str, float]:
    """Sum of every person's totals."""
    grand = {"totalOrders": 0, "totalSaleAmount": 0.0, "totalCashAmount": 0.0}
    for item in summary:
        grand["totalOrders"] += item.total_orders
        grand["totalSaleAmount"] += item.total_sale_amount
        grand["totalCashAmount"] += item.total_cash_amount
    grand["totalSaleAmount"] = round(grand["totalSaleAmount"], 2)
    grand["totalCashAmount"] = round(grand["totalCashAmount"], 2)
    return grand


def segment_master_customers(rows: Iterable[MasterCustomerRow]) -> RepeatVsNew:
    """Repeat (count > 1) vs new (count == 1) from the master customer table."""
    repeat = new = 0
    for row in rows:
        if row.purchase_count > 1:
            repeat += 1
        elif row.purchase_count == 1:
            new += 1
    return RepeatVsNew(repeat=repeat, new=new)


def first_purchase_date(row: MasterCustomerRow) -> Optional[date]:
    """Earliest dated history entry, else the recorded last purchase date."""
    dated = [entry.date for entry in row.purchase_history if entry.date]
    if dated:
        return min(dated)
    return parse_period_date(row.last_purchase_date)


def customer_metrics(
    rows: Iterable[MasterCustomerRow],
    today: date,
    new_within_days: int = 30,
    active_within_days: int = 60,
    top_n: int = 5,
) -> CustomerMetrics:
    """
    Total, new, active and top-spending customers from the master table.

    New: first purchase on or after `today - new_within_days`.
    Active: last purchase at most `active_within_days` before `today`.
    Rows without a readable date are neither.
    """
    rows = list(rows)
    new_since = today - timedelta(days=new_within_days)

    new = active = 0
    for row in rows:
        first = first_purchase_date(row)
        if first is not None and first >= new_since:
            new += 1
        last = parse_period_date(row.last_purchase_date)
        if last is not None and (today - last).days <= active_within_days:
            active += 1

    ranked = sorted(
        (
            TopCustomer(
                id=position,
                name=row.customer_name,
                purchases=row.purchase_count,
                total=row.total_spent,
            )
            for position, row in enumerate(rows, start=1)
        ),
        key=lambda c: c.total,
        reverse=True,
    )
    return CustomerMetrics(
        total=len(rows),
        new=new,
        active=active,
        top_customers=tuple(ranked[:max(top_n, 0)]),
    )
