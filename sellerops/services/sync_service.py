"""
Marketplace sync orchestration.

Each public method is one sync entry point (manual endpoint or cron job). It
builds (date, status, account) cells, lets the SyncScheduler run them inside a
time budget, and writes an api_sync_logs row. For every cell:

    window -> collect_window (fetch + boundary policy) -> OrderReconciler
           -> ProductResolver for new line items
"""
import asyncio
import logging
import time
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from sellerops.config import settings
from sellerops.models.product import Marketplace
from sellerops.services.anomaly_service import is_suspected_rocket_order
from sellerops.services.marketplace_service import (
    CoupangAccount,
    CollectedWindow,
    CoupangClient,
    MarketplaceConfigError,
    NaverAccount,
    NaverCommerceClient,
    collect_window,
    get_coupang_accounts,
    get_naver_accounts,
)
from sellerops.services.order_reconciler import (
    OrderChannel,
    OrderReconciler,
    RecordContext,
)
from sellerops.services.product_resolver import ProductResolver
from sellerops.services.sync_log_service import SyncLogService
from sellerops.services.sync_scheduler import (
    CellResult,
    SchedulerSummary,
    SyncCell,
    SyncScheduler,
    TimeBudget,
    build_cells,
)
from sellerops.services.window_partitioner import (
    DateWindow,
    Granularity,
    WindowPolicy,
    date_range,
    kst_today,
    partition,
    rolling_window,
)

logger = logging.getLogger(__name__)


# Seller-shipped order statuses in lifecycle order
SELLER_ORDER_STATUSES = ["ACCEPT", "INSTRUCT", "DEPARTURE", "DELIVERING", "FINAL_DELIVERY"]

# New orders first, then delivered ones (sales numbers), then in-flight states
CRON_STATUS_PRIORITY = ["ACCEPT", "FINAL_DELIVERY", "INSTRUCT", "DEPARTURE", "DELIVERING"]


def seller_orders_policy() -> WindowPolicy:
    return WindowPolicy(
        widen_days=settings.SELLER_ORDERS_WIDEN_DAYS,
        filter_by_record_time=settings.SELLER_ORDERS_FILTER_BY_RECORD_TIME,
    )


def rocket_orders_policy() -> WindowPolicy:
    # rg/orders returns nothing when paidDateFrom == paidDateTo
    return WindowPolicy(
        widen_days=settings.ROCKET_ORDERS_WIDEN_DAYS,
        filter_by_record_time=settings.ROCKET_ORDERS_FILTER_BY_RECORD_TIME,
    )


def revenue_policy() -> WindowPolicy:
    return WindowPolicy(
        widen_days=settings.REVENUE_WIDEN_DAYS,
        filter_by_record_time=settings.REVENUE_FILTER_BY_RECORD_TIME,
    )


def naver_orders_policy() -> WindowPolicy:
    return WindowPolicy(
        widen_days=settings.NAVER_ORDERS_WIDEN_DAYS,
        filter_by_record_time=settings.NAVER_ORDERS_FILTER_BY_RECORD_TIME,
    )


def naver_payment_time(record: Dict[str, Any]) -> Any:
    order = (record.get("content") or {}).get("order") or {}
    return order.get("paymentDate") or order.get("orderDate")


def paging_errors(collected: Sequence[CollectedWindow], account: str) -> List[str]:
    """One error per window whose pages were not all read."""
    return [
        f"{window.window} [{account}]: paging stopped after {window.pages} pages, remaining pages deferred"
        for window in collected
        if window.truncated
    ]


class MarketplaceSyncService:
    """Runs marketplace syncs against one database session."""

    def __init__(
        self,
        db: AsyncSession,
        http_client: Optional[httpx.AsyncClient] = None,
        coupang_clients: Optional[Sequence[Any]] = None,
        naver_clients: Optional[Sequence[Any]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.db = db
        self.http_client = http_client
        self.clock = clock
        self._coupang_clients = list(coupang_clients) if coupang_clients is not None else None
        self._naver_clients = list(naver_clients) if naver_clients is not None else None
        self.sync_log = SyncLogService(db)

    # ==================== Clients ====================

    def coupang_clients(self) -> Dict[str, Any]:
        if self._coupang_clients is None:
            accounts: List[CoupangAccount] = get_coupang_accounts()
            self._coupang_clients = [CoupangClient(account, http_client=self.http_client) for account in accounts]
        if not self._coupang_clients:
            raise MarketplaceConfigError("No Coupang account is configured", marketplace=Marketplace.COUPANG.value)
        return {client.account.name: client for client in self._coupang_clients}

    def naver_clients(self) -> Dict[str, Any]:
        if self._naver_clients is None:
            accounts: List[NaverAccount] = get_naver_accounts()
            self._naver_clients = [NaverCommerceClient(account, http_client=self.http_client) for account in accounts]
        if not self._naver_clients:
            raise MarketplaceConfigError("No Naver account is configured", marketplace=Marketplace.NAVER.value)
        return {client.account.name: client for client in self._naver_clients}

    # ==================== Shared run plumbing ====================

    async def _run(
        self,
        channel: str,
        sync_type: str,
        cells: List[SyncCell],
        handler,
        max_runtime_seconds: float,
        period: Dict[str, str],
    ) -> Dict[str, Any]:
        started_at = datetime.now(timezone.utc)
        budget = TimeBudget(max_runtime_seconds, clock=self.clock)
        summary: SchedulerSummary = await SyncScheduler(budget).run(cells, handler)

        response = {"success": True, "sync_type": sync_type, "period": period, **summary.to_dict()}
        details = {key: value for key, value in response.items() if key not in ("errors", "success")}
        await self.sync_log.record(
            channel=channel,
            sync_type=sync_type,
            records_count=summary.synced,
            errors=summary.errors,
            details=details,
            started_at=started_at,
        )
        return response

    @staticmethod
    def _cell_result(fetched: int, reconciled, extra_errors: Sequence[str] = ()) -> CellResult:
        return CellResult(
            fetched=fetched,
            inserted=reconciled.inserted,
            updated=reconciled.updated,
            skipped=reconciled.skipped,
            deferred=reconciled.deferred,
            errors=list(extra_errors) + [str(error) for error in reconciled.errors],
        )

    # ==================== Coupang seller-shipped ====================

    async def _seller_cell(self, cell: SyncCell, budget: TimeBudget, resolver: ProductResolver) -> CellResult:
        client = self.coupang_clients()[cell.account]
        window = DateWindow(cell.date, cell.date, cell.status)
        collected = await collect_window(
            client.fetch_seller_orders,
            window,
            seller_orders_policy(),
            timestamp_fn=lambda record: record.get("orderedAt"),
            budget=budget,
        )
        records = collected.records

        suspects = [record for record in records if is_suspected_rocket_order(record)]
        if suspects:
            logger.warning(
                f"[coupang_seller] {len(suspects)} records in {window} look like Rocket Growth orders"
            )

        reconciled = await OrderReconciler(self.db, OrderChannel.COUPANG_SELLER, resolver).reconcile(
            records,
            RecordContext(account_name=client.account.name, vendor_id=client.account.vendor_id),
            budget=budget,
        )
        return self._cell_result(len(records), reconciled, paging_errors([collected], cell.account))

    async def sync_seller_chunk(self, day: date, status: str) -> Dict[str, Any]:
        """One day and one status across all accounts, inside the chunk budget."""
        if status not in SELLER_ORDER_STATUSES:
            raise ValueError(f"Unknown seller order status: {status}")

        resolver = ProductResolver(self.db)
        cells = build_cells([day], [status], list(self.coupang_clients()))
        return await self._run(
            Marketplace.COUPANG.value,
            "seller_orders_chunk",
            cells,
            lambda cell, budget: self._seller_cell(cell, budget, resolver),
            settings.SYNC_CHUNK_MAX_RUNTIME_SECONDS,
            {"date": day.isoformat(), "status": status},
        )

    async def sync_seller_cron(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Yesterday and today, statuses in priority order, inside the cron budget."""
        today = today or kst_today()
        yesterday = today - timedelta(days=1)

        resolver = ProductResolver(self.db)
        cells = build_cells([yesterday, today], CRON_STATUS_PRIORITY, list(self.coupang_clients()))
        return await self._run(
            Marketplace.COUPANG.value,
            "seller_orders_cron",
            cells,
            lambda cell, budget: self._seller_cell(cell, budget, resolver),
            settings.SYNC_CRON_MAX_RUNTIME_SECONDS,
            {"from": yesterday.isoformat(), "to": today.isoformat()},
        )

    # ==================== Coupang Rocket Growth ====================

    async def _rocket_cell(self, cell: SyncCell, budget: TimeBudget, resolver: ProductResolver) -> CellResult:
        client = self.coupang_clients()[cell.account]
        collected = await collect_window(
            client.fetch_rocket_orders,
            DateWindow(cell.date, cell.date),
            rocket_orders_policy(),
            timestamp_fn=lambda record: record.get("paidAt"),
            budget=budget,
        )
        reconciled = await OrderReconciler(self.db, OrderChannel.COUPANG_ROCKET, resolver).reconcile(
            collected.records,
            RecordContext(account_name=client.account.name, vendor_id=client.account.vendor_id),
            budget=budget,
        )
        return self._cell_result(len(collected.records), reconciled, paging_errors([collected], cell.account))

    async def sync_rocket_orders(self, start: date, end: date, sync_type: str = "rocket_growth_orders") -> Dict[str, Any]:
        """Rocket Growth orders paid between start and end (inclusive)."""
        if start > end:
            raise ValueError("from must not be after to")

        resolver = ProductResolver(self.db)
        cells = build_cells(date_range(start, end), [None], list(self.coupang_clients()))
        return await self._run(
            Marketplace.COUPANG.value,
            sync_type,
            cells,
            lambda cell, budget: self._rocket_cell(cell, budget, resolver),
            settings.SYNC_RANGE_MAX_RUNTIME_SECONDS,
            {"from": start.isoformat(), "to": end.isoformat()},
        )

    async def sync_rocket_cron(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Rolling window; Coupang posts Rocket Growth orders with a delay of a few days."""
        start, end = rolling_window(settings.ROCKET_CRON_LOOKBACK_DAYS, today)
        return await self.sync_rocket_orders(start, end, sync_type="rocket_growth_orders_cron")

    # ==================== Coupang revenue ====================

    async def sync_revenue(self, start: date, end: date, sync_type: str = "revenue") -> Dict[str, Any]:
        """Revenue lines recognised between start and end, in chunks of at most 30 days."""
        if start > end:
            raise ValueError("from must not be after to")

        windows = {
            window.start: window
            for window in partition(start, end, Granularity.DAY, max_span_days=settings.REVENUE_MAX_SPAN_DAYS)
        }

        async def revenue_cell(cell: SyncCell, budget: TimeBudget) -> CellResult:
            client = self.coupang_clients()[cell.account]
            collected = await collect_window(
                client.fetch_revenue,
                windows[cell.date],
                revenue_policy(),
                timestamp_fn=lambda record: record.get("recognizedAt"),
                budget=budget,
            )
            reconciled = await OrderReconciler(self.db, OrderChannel.COUPANG_REVENUE).reconcile(
                collected.records,
                RecordContext(account_name=client.account.name, vendor_id=client.account.vendor_id),
                budget=budget,
            )
            return self._cell_result(len(collected.records), reconciled, paging_errors([collected], cell.account))

        cells = build_cells(list(windows), [None], list(self.coupang_clients()))
        return await self._run(
            Marketplace.COUPANG.value,
            sync_type,
            cells,
            revenue_cell,
            settings.SYNC_RANGE_MAX_RUNTIME_SECONDS,
            {"from": start.isoformat(), "to": end.isoformat()},
        )

    async def sync_revenue_cron(self, today: Optional[date] = None) -> Dict[str, Any]:
        start, end = rolling_window(settings.REVENUE_CRON_LOOKBACK_DAYS, today)
        return await self.sync_revenue(start, end, sync_type="revenue_cron")

    # ==================== Naver SmartStore ====================

    async def sync_naver_orders(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        sync_type: str = "naver_orders",
    ) -> Dict[str, Any]:
        """
        Product orders paid between start and end (default: last 7 days up to yesterday).

        Day windows are fetched concurrently in groups of NAVER_SYNC_CONCURRENCY;
        each group is one scheduler cell.
        """
        today = kst_today()
        start = start or today - timedelta(days=settings.NAVER_DEFAULT_LOOKBACK_DAYS)
        end = end or today - timedelta(days=1)
        if start > end:
            raise ValueError("from must not be after to")

        group_size = max(1, settings.NAVER_SYNC_CONCURRENCY)
        days = date_range(start, end)
        groups = {days[i]: days[i:i + group_size] for i in range(0, len(days), group_size)}
        resolver = ProductResolver(self.db)

        async def naver_cell(cell: SyncCell, budget: TimeBudget) -> CellResult:
            client = self.naver_clients()[cell.account]
            windows = [DateWindow(day, day) for day in groups[cell.date]]
            fetched = await asyncio.gather(
                *(
                    collect_window(
                        client.fetch_product_orders,
                        window,
                        naver_orders_policy(),
                        timestamp_fn=naver_payment_time,
                        budget=budget,
                    )
                    for window in windows
                ),
                return_exceptions=True,
            )

            records: List[Dict[str, Any]] = []
            collected: List[CollectedWindow] = []
            fetch_errors: List[str] = []
            for window, outcome in zip(windows, fetched):
                if isinstance(outcome, Exception):
                    logger.error(f"[naver] {cell.account} {window} fetch failed: {outcome}")
                    fetch_errors.append(f"{window} [{cell.account}]: {outcome}")
                else:
                    collected.append(outcome)
                    records.extend(outcome.records)
            fetch_errors.extend(paging_errors(collected, cell.account))

            reconciled = await OrderReconciler(self.db, OrderChannel.NAVER, resolver).reconcile(
                records,
                RecordContext(account_name=client.account.name),
                budget=budget,
            )
            return self._cell_result(len(records), reconciled, fetch_errors)

        cells = build_cells(list(groups), [None], list(self.naver_clients()))
        return await self._run(
            Marketplace.NAVER.value,
            sync_type,
            cells,
            naver_cell,
            settings.SYNC_RANGE_MAX_RUNTIME_SECONDS,
            {"from": start.isoformat(), "to": end.isoformat()},
        )

    async def sync_naver_cron(self) -> Dict[str, Any]:
        return await self.sync_naver_orders(sync_type="naver_orders_cron")
