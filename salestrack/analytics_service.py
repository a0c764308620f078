"""
Analytics query service.

Every query follows the same path:
    list tables -> locate period tables -> read them concurrently ->
    project rows -> fold -> classify -> JSON-ready dict

Nothing is cached between calls. A period table that is missing or fails to
read contributes nothing; a query that fails as a whole returns its empty
result (see resilience.best_effort).
"""
import asyncio
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from salestrack.aggregation import BucketWindow, fold_buckets, fold_customers, fold_single_day
from salestrack.classification import (
    customer_metrics,
    customers_on_date,
    group_by_delivery_person,
    new_on_date,
    reconcile_delivery_totals,
    reconciliation_grand_totals,
    segment_by_visit_count,
    segment_master_customers,
    top_by_total,
    with_returns,
    with_samples,
)
from salestrack.config import AppConfig, config
from salestrack.exceptions import TableNotFoundError
from salestrack.models import (
    CustomerMetrics,
    MasterCustomerRow,
    PatternKind,
    PeriodTable,
    TransactionRecord,
)
from salestrack.observability import (
    Timer,
    correlation_context,
    get_correlation_id,
    get_logger,
    scan_stats,
)
from salestrack.periods import format_period_date, locate, period_table_name
from salestrack.projection import (
    MASTER_CUSTOMER_LAYOUT,
    ColumnLayout,
    daily_layout,
    project_master,
    project_rows,
)
from salestrack.resilience import best_effort
from salestrack.stores.base import Row, TabularStore
from salestrack.validators import (
    MAX_WINDOW_DAYS,
    MAX_WINDOW_MONTHS,
    validate_limit,
    validate_period_date,
    validate_shift,
    validate_window,
)

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# EMPTY RESULTS
# ═══════════════════════════════════════════════════════════════════════════════

def _empty_insights(*args, **kwargs) -> Dict[str, Any]:
    return {
        "selectedDate": "",
        "availableDates": [],
        "totalCustomersAllTime": 0,
        "dateWiseCustomers": [],
        "newCustomers": [],
        "repeatCustomers": {"twoTimes": [], "threeTimes": [], "fourPlusTimes": []},
        "sampleCustomers": [],
        "returnCustomers": [],
        "topBuyers": [],
    }


def _empty_trend(key: str):
    def build(*args, **kwargs) -> Dict[str, Any]:
        return {key: [], "count": 0}
    return build


def _empty_delivery_list(*args, **kwargs) -> Dict[str, Any]:
    return {
        "deliveryGroups": [],
        "totalDeliveryPersons": 0,
        "totalShops": 0,
        "date": "",
        "shift": "",
        "message": "Delivery list unavailable",
    }


def _empty_metrics(*args, **kwargs) -> Dict[str, Any]:
    return CustomerMetrics().to_dict()


def _empty_summary(*args, **kwargs) -> Dict[str, Any]:
    return {
        "summary": [],
        "totals": {"totalOrders": 0, "totalSaleAmount": 0.0, "totalCashAmount": 0.0},
        "topPerformer": None,
        "count": 0,
    }


class AnalyticsService:
    """
    Read-only analytics over a tabular store.

    Usage:
        async with SheetsStore() as store:
            service = AnalyticsService(store)
            insights = await service.customer_insights("01-06-2025")
    """

    def __init__(self, store: TabularStore, app_config: Optional[AppConfig] = None):
        self.store = store
        self.config = app_config or config

    @property
    def layout(self) -> ColumnLayout:
        return daily_layout(self.config.analytics.daily_layout)

    # ═══════════════════════════════════════════════════════════════════════════
    # SCANNING
    # ═══════════════════════════════════════════════════════════════════════════

    async def period_tables(self, kind: PatternKind = PatternKind.DATE_SHIFT) -> List[PeriodTable]:
        """Discover period tables in the store, oldest first."""
        names = await self.store.list_tables()
        tables = locate(names, kind)
        logger.debug(
            "Located period tables",
            extra={"tables_total": len(names), "period_tables": len(tables)}
        )
        return tables

    async def _read_table(self, table: str, range_spec: str, query: str) -> List[Row]:
        """Read one table; missing or failing tables come back empty."""
        try:
            with Timer(f"read {table}", logger):
                rows = await self.store.read_rows(table, range_spec)
        except TableNotFoundError:
            logger.info(f"Table {table} not found, treating as empty", extra={"table": table})
            scan_stats.record_missing(query)
            return []
        except Exception as e:
            logger.warning(
                f"Failed to read table {table}: {e}",
                extra={"table": table, "query": query, "error": str(e)}
            )
            scan_stats.record_failure(query)
            return []

        scan_stats.record_read(query)
        return rows

    async def scan(self, tables: Iterable[PeriodTable], query: str = "scan") -> List[TransactionRecord]:
        """
        Read and project every given period table.

        Reads run concurrently, bounded by max_concurrent_fetches. Records come
        back in table order regardless of which read finished first.
        """
        tables = list(tables)
        if not tables:
            return []

        semaphore = asyncio.Semaphore(self.config.store.max_concurrent_fetches)
        range_spec = self.config.store.period_range

        async def fetch(table: PeriodTable) -> List[Row]:
            async with semaphore:
                return await self._read_table(table.name, range_spec, query)

        results = await asyncio.gather(*(fetch(t) for t in tables))

        layout = self.layout
        records: List[TransactionRecord] = []
        for table, rows in zip(tables, results):
            records.extend(project_rows(rows, layout, table))

        logger.info(
            f"Scanned {len(tables)} period tables",
            extra={"query": query, "tables": len(tables), "records": len(records)}
        )
        return records

    async def master_customers(self, query: str = "master") -> List[MasterCustomerRow]:
        """Rows of the master customer table (empty if it does not exist)."""
        rows = await self._read_table(
            self.config.store.master_table,
            self.config.store.master_range,
            query,
        )
        projected = (project_master(row, MASTER_CUSTOMER_LAYOUT) for row in rows)
        return [row for row in projected if row is not None]

    # ═══════════════════════════════════════════════════════════════════════════
    # CUSTOMER QUERIES
    # ═══════════════════════════════════════════════════════════════════════════

    @best_effort(_empty_insights)
    async def customer_insights(
        self,
        selected_date: Optional[str] = None,
        top_n: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Customer overview across all period tables.

        With a selected date, also lists that day's customers (shifts merged)
        and the customers whose first purchase was that day.
        """
        day = validate_period_date(selected_date, "date", required=False)
        limit = validate_limit(top_n, default=self.config.analytics.top_buyers_limit)

        with correlation_context(get_correlation_id()), Timer("customer_insights", logger):
            tables = await self.period_tables()
            records = await self.scan(tables, "customer_insights")

            customers = fold_customers(records)
            population = list(customers.values())
            segments = segment_by_visit_count(population)

            date_wise, new_today = [], []
            if day is not None:
                day_entries = fold_single_day(records, day)
                date_wise = customers_on_date(day_entries)
                new_today = new_on_date(customers, day_entries, day)

            available = sorted({t.date for t in tables}, reverse=True)

            return {
                "selectedDate": format_period_date(day) if day else "",
                "availableDates": [format_period_date(d) for d in available],
                "totalCustomersAllTime": len(population),
                "dateWiseCustomers": [e.to_dict() for e in date_wise],
                "newCustomers": [e.to_dict() for e in new_today],
                "repeatCustomers": segments.to_dict(),
                "sampleCustomers": [c.to_dict() for c in with_samples(population)],
                "returnCustomers": [c.to_dict() for c in with_returns(population)],
                "topBuyers": [c.to_dict() for c in top_by_total(population, limit)],
            }

    @best_effort(lambda *args, **kwargs: {"repeat": 0, "new": 0, "total": 0})
    async def repeat_vs_new(self) -> Dict[str, Any]:
        """Repeat vs new customer counts from the master customer table."""
        with correlation_context(get_correlation_id()), Timer("repeat_vs_new", logger):
            rows = await self.master_customers("repeat_vs_new")
            return segment_master_customers(rows).to_dict()

    @best_effort(_empty_metrics)
    async def dashboard_metrics(
        self,
        today: Optional[date] = None,
        top_n: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Total, new, active and inactive customers plus the top spenders."""
        analytics = self.config.analytics
        today = validate_period_date(today, "today", required=False) or date.today()
        limit = validate_limit(top_n, "top_n", default=analytics.top_customers_limit)

        with correlation_context(get_correlation_id()), Timer("dashboard_metrics", logger):
            rows = await self.master_customers("dashboard_metrics")
            metrics = customer_metrics(
                rows,
                today,
                new_within_days=analytics.new_customer_days,
                active_within_days=analytics.active_customer_days,
                top_n=limit,
            )
            logger.debug(
                "Classified master customers",
                extra={"customers": metrics.total, "new": metrics.new, "active": metrics.active}
            )
            return metrics.to_dict()

    @best_effort(_empty_trend("trend"))
    async def avg_order_trend(
        self,
        today: Optional[date] = None,
        months: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Monthly average order value from master purchase histories."""
        months = validate_window(
            months, "months", self.config.analytics.monthly_window_months, MAX_WINDOW_MONTHS
        )
        window = BucketWindow.monthly(today, months)

        with correlation_context(get_correlation_id()), Timer("avg_order_trend", logger):
            rows = await self.master_customers("avg_order_trend")
            points = (
                (entry.date, entry.amount)
                for row in rows
                for entry in row.purchase_history
            )
            buckets = fold_buckets(points, window)

            trend = [
                {**bucket.to_dict(), "avgOrderValue": round(bucket.average, 2)}
                for bucket in buckets.values()
            ]
            return {"trend": trend, "count": len(trend)}

    # ═══════════════════════════════════════════════════════════════════════════
    # SALES TRENDS
    # ═══════════════════════════════════════════════════════════════════════════

    async def _sales_trend(self, window: BucketWindow, query: str) -> List[Dict[str, Any]]:
        starts = set(window.starts())
        tables = [
            t for t in await self.period_tables()
            if window.bucket_start(t.date) in starts
        ]
        records = await self.scan(tables, query)
        buckets = fold_buckets(((r.date, r.sale_amount) for r in records), window)
        return [bucket.to_dict() for bucket in buckets.values()]

    @best_effort(_empty_trend("dailySales"))
    async def daily_sales(
        self,
        today: Optional[date] = None,
        days: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Sale amount per day over the trailing window (oldest first)."""
        days = validate_window(days, "days", self.config.analytics.daily_window_days, MAX_WINDOW_DAYS)
        window = BucketWindow.daily(today, days)

        with correlation_context(get_correlation_id()), Timer("daily_sales", logger):
            series = await self._sales_trend(window, "daily_sales")
            return {"dailySales": series, "count": len(series)}

    @best_effort(_empty_trend("monthlySales"))
    async def monthly_sales_trend(
        self,
        today: Optional[date] = None,
        months: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Sale amount per month over the trailing window (oldest first)."""
        months = validate_window(
            months, "months", self.config.analytics.monthly_window_months, MAX_WINDOW_MONTHS
        )
        window = BucketWindow.monthly(today, months)

        with correlation_context(get_correlation_id()), Timer("monthly_sales_trend", logger):
            series = await self._sales_trend(window, "monthly_sales_trend")
            return {"monthlySales": series, "count": len(series)}

    # ═══════════════════════════════════════════════════════════════════════════
    # DELIVERY
    # ═══════════════════════════════════════════════════════════════════════════

    @best_effort(_empty_delivery_list)
    async def delivery_list(self, day: str, shift: str) -> Dict[str, Any]:
        """Shops grouped by delivery person for one date and shift."""
        parsed_day = validate_period_date(day, "date")
        parsed_shift = validate_shift(shift)
        table = PeriodTable(
            name=period_table_name(parsed_day, parsed_shift),
            date=parsed_day,
            shift=parsed_shift,
        )
        date_label = format_period_date(parsed_day)

        def empty(message: str) -> Dict[str, Any]:
            return {
                **_empty_delivery_list(),
                "date": date_label,
                "shift": parsed_shift.value,
                "message": message,
            }

        with correlation_context(get_correlation_id()), Timer("delivery_list", logger):
            try:
                rows = await self.store.read_rows(table.name, self.config.store.period_range)
            except TableNotFoundError:
                scan_stats.record_missing("delivery_list")
                return empty(f"No data found for {date_label} {parsed_shift.value}")
            scan_stats.record_read("delivery_list")

            records = project_rows(rows, self.layout, table)
            if not records:
                return empty(f"No deliveries found for {date_label} {parsed_shift.value}")

            groups = group_by_delivery_person(records)
            return {
                "deliveryGroups": [g.to_dict() for g in groups],
                "totalDeliveryPersons": len(groups),
                "totalShops": sum(g.total_shops for g in groups),
                "date": date_label,
                "shift": parsed_shift.value,
            }

    @best_effort(_empty_summary)
    async def delivery_summary(self) -> Dict[str, Any]:
        """Per-delivery-person totals across every period table."""
        with correlation_context(get_correlation_id()), Timer("delivery_summary", logger):
            tables = await self.period_tables()
            records = await self.scan(tables, "delivery_summary")

            summary = reconcile_delivery_totals(records)
            return {
                "summary": [s.to_dict() for s in summary],
                "totals": reconciliation_grand_totals(summary),
                "topPerformer": summary[0].delivery_person if summary else None,
                "count": len(summary),
            }
