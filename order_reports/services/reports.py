"""Order report dispatcher.

Scans a shop's orders for the requested window, computes the totals once and
runs the rollup(s) of the requested tab. Stateless: every call re-scans.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Union

from order_reports.config import Settings
from order_reports.services.analytics import (
    CancelReason, DailyCompleted, DailyCreated, OrderAnalyticsEngine, ProductPage,
    ReportTotals, StatusBreakdown, ValueDistribution,
)
from order_reports.services.errors import ReportValidationError
from order_reports.services.order_store import OrderReader, OrderStore
from order_reports.services.profit_calc import ProfitModel
from order_reports.services.records import OrderRecord

logger = logging.getLogger(__name__)

MIN_TZ_OFFSET = -12
MAX_TZ_OFFSET = 14

# Last second of 9999-12-31, less the widest offset so local dates stay representable
MAX_EPOCH = 253402300799 - MAX_TZ_OFFSET * 3600
SECONDS_PER_DAY = 86400


class ReportTab(str, Enum):
    ALL = "all"
    CREATED = "created"
    COMPLETED = "completed"
    VALUE = "value"
    PRODUCT = "product"
    STATUS = "status"
    CANCEL = "cancel"


@dataclass(frozen=True)
class ReportRequest:
    shop_id: Optional[int]
    start_ts: Optional[int]
    end_ts: Optional[int]
    tab: Optional[str] = None
    page: Optional[int] = None
    page_size: Optional[int] = None
    search: Optional[str] = None
    timezone_offset: Optional[int] = None


@dataclass
class AllReports:
    daily_created: list[DailyCreated]
    daily_completed: list[DailyCompleted]
    value_ranges: ValueDistribution
    products: ProductPage
    status_breakdown: StatusBreakdown
    cancel_reasons: list[CancelReason]


ReportData = Union[
    list[DailyCreated], list[DailyCompleted], ValueDistribution, ProductPage,
    StatusBreakdown, list[CancelReason], AllReports,
]


@dataclass
class ReportResult:
    tab: str
    data: ReportData
    totals: ReportTotals


class OrderReportService:
    """Runs order reports against an :class:`OrderStore`."""

    def __init__(
        self,
        reader: OrderReader,
        engine: Optional[OrderAnalyticsEngine] = None,
        default_tz_offset: int = 7,
        default_page_size: int = 50,
        max_page_size: int = 500,
        max_window_days: int = 0,
    ):
        self.reader = reader
        self.engine = engine or OrderAnalyticsEngine()
        self.default_tz_offset = default_tz_offset
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.max_window_days = max_window_days

    @classmethod
    def from_settings(cls, store: OrderStore, settings: Settings) -> OrderReportService:
        reader = OrderReader(
            store,
            page_size=settings.scan_page_size,
            page_timeout=settings.scan_page_timeout_seconds or None,
            max_pages=settings.max_scan_pages,
        )
        engine = OrderAnalyticsEngine(ProfitModel(
            margin_rate=settings.profit_margin_rate,
            shipping_rate=settings.profit_shipping_rate,
        ))
        return cls(
            reader,
            engine,
            default_tz_offset=settings.default_timezone_offset,
            default_page_size=settings.default_product_page_size,
            max_page_size=settings.max_product_page_size,
            max_window_days=settings.max_window_days,
        )

    # ── Validation ──────────────────────────────────────

    def validate(self, request: ReportRequest) -> ReportRequest:
        """Check required parameters and fill in defaults."""
        if not request.shop_id or not request.start_ts or not request.end_ts:
            raise ReportValidationError("Missing required parameters: shop_id, start_ts, end_ts")
        if request.start_ts > request.end_ts:
            raise ReportValidationError("start_ts must not be after end_ts")
        if request.start_ts < 0 or request.end_ts > MAX_EPOCH:
            raise ReportValidationError(
                f"start_ts and end_ts must be epoch seconds between 0 and {MAX_EPOCH}"
            )
        days = (request.end_ts - request.start_ts) // SECONDS_PER_DAY + 1
        if self.max_window_days and days > self.max_window_days:
            raise ReportValidationError(
                f"Report window spans {days} days, at most {self.max_window_days} allowed"
            )

        tab = (request.tab or ReportTab.ALL.value).lower()
        if tab not in {t.value for t in ReportTab}:
            allowed = ", ".join(t.value for t in ReportTab)
            raise ReportValidationError(f"Unknown tab '{request.tab}', expected one of: {allowed}")

        # Paging only applies to the product list
        page = request.page if request.page is not None else 1
        page_size = request.page_size
        if page_size is None:
            page_size = min(self.default_page_size, self.max_page_size)
        if tab in (ReportTab.PRODUCT.value, ReportTab.ALL.value):
            if page < 1:
                raise ReportValidationError("page must be >= 1")
            if not 1 <= page_size <= self.max_page_size:
                raise ReportValidationError(f"page_size must be between 1 and {self.max_page_size}")

        tz_offset = request.timezone_offset
        if tz_offset is None:
            tz_offset = self.default_tz_offset
        if not MIN_TZ_OFFSET <= tz_offset <= MAX_TZ_OFFSET:
            raise ReportValidationError(
                f"timezone_offset must be between {MIN_TZ_OFFSET} and {MAX_TZ_OFFSET}"
            )

        return replace(
            request,
            tab=tab,
            page=page,
            page_size=page_size,
            search=(request.search or "").strip(),
            timezone_offset=tz_offset,
        )

    # ── Dispatch ────────────────────────────────────────

    async def run(self, request: ReportRequest, cancel: Optional[asyncio.Event] = None) -> ReportResult:
        req = self.validate(request)
        tab = ReportTab(req.tab)
        window = (req.start_ts, req.end_ts, req.timezone_offset)

        raw = await self.reader.fetch_created(req.shop_id, req.start_ts, req.end_ts, cancel)
        orders = [OrderRecord.from_dict(r) for r in raw]
        totals = self.engine.totals(orders)
        logger.info(f"Order report shop={req.shop_id} tab={tab.value}: {len(orders)} orders in window")

        completed_input: Sequence[OrderRecord] = orders
        if tab in (ReportTab.COMPLETED, ReportTab.ALL):
            completed_input = await self._with_returns(orders, req, cancel)

        if tab == ReportTab.CREATED:
            data = self.engine.daily_created(orders, *window)
        elif tab == ReportTab.COMPLETED:
            data = self.engine.daily_completed(completed_input, *window)
        elif tab == ReportTab.VALUE:
            data = self.engine.value_distribution(orders)
        elif tab == ReportTab.PRODUCT:
            data = self.engine.products(orders, req.page, req.page_size, req.search)
        elif tab == ReportTab.STATUS:
            data = self.engine.status_breakdown(orders, *window)
        elif tab == ReportTab.CANCEL:
            data = self.engine.cancel_reasons(orders)
        else:
            data = AllReports(
                daily_created=self.engine.daily_created(orders, *window),
                daily_completed=self.engine.daily_completed(completed_input, *window),
                value_ranges=self.engine.value_distribution(orders),
                products=self.engine.products(orders, req.page, req.page_size, req.search),
                status_breakdown=self.engine.status_breakdown(orders, *window),
                cancel_reasons=self.engine.cancel_reasons(orders),
            )
        return ReportResult(tab=tab.value, data=data, totals=totals)

    async def _with_returns(
        self,
        orders: list[OrderRecord],
        req: ReportRequest,
        cancel: Optional[asyncio.Event],
    ) -> list[OrderRecord]:
        """Primary orders plus returns created before the window; primary rows win."""
        raw = await self.reader.fetch_returns(req.shop_id, req.start_ts, req.end_ts, cancel)
        seen = {o.order_sn for o in orders}
        extra = [r for r in (OrderRecord.from_dict(x) for x in raw) if r.order_sn not in seen]
        logger.info(f"Fetched {len(raw)} return orders, {len(extra)} created outside the window")
        return orders + extra
