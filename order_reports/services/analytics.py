"""Order analytics engine for marketplace shops.

Six rollups over one order snapshot: daily created trend, daily completed
cash flow, value/quantity distribution, per-product performance, status
breakdown and cancellation reasons. Every daily series is seeded with the
full local-day range of the window so days without orders still get a row.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Iterable, Optional, Sequence

from order_reports.services.labels import cancel_reason_label, status_label
from order_reports.services.local_date import local_date, local_date_range
from order_reports.services.profit_calc import ProfitCalculator, ProfitModel
from order_reports.services.records import (
    CANCELLED_STATUSES, IN_SHIPPING_STATUSES, ZERO, OrderRecord, OrderStatus,
)

CENT = Decimal("0.01")
WHOLE = Decimal("1")

# (label, min, max); value ranges are half-open, max None is unbounded
VALUE_RANGES: tuple[tuple[str, int, Optional[int]], ...] = (
    ("< 200.000", 0, 200_000),
    ("200.000 - 500.000", 200_000, 500_000),
    ("500.000 - 1.000.000", 500_000, 1_000_000),
    ("1.000.000 - 2.000.000", 1_000_000, 2_000_000),
    ("> 2.000.000", 2_000_000, None),
)

# Quantity ranges are inclusive on both ends
QUANTITY_RANGES: tuple[tuple[str, int, Optional[int]], ...] = (
    ("1", 1, 1),
    ("2", 2, 2),
    ("3", 3, 3),
    ("4", 4, 4),
    ("5", 5, 5),
    ("6-7", 6, 7),
    ("8-10", 8, 10),
    ("11+", 11, None),
)

# Daily status buckets of the status report
STATUS_GROUPS = MappingProxyType({
    OrderStatus.UNPAID.value: "confirmed",
    OrderStatus.PENDING.value: "confirmed",
    OrderStatus.INVOICE_PENDING.value: "confirmed",
    OrderStatus.PROCESSED.value: "packaging",
    OrderStatus.READY_TO_SHIP.value: "packaging",
    OrderStatus.SHIPPED.value: "shipping",
    OrderStatus.TO_CONFIRM_RECEIVE.value: "shipping",
    OrderStatus.COMPLETED.value: "completed",
    OrderStatus.CANCELLED.value: "cancelled",
    OrderStatus.IN_CANCEL.value: "cancelled",
    OrderStatus.TO_RETURN.value: "returns",
})


def percent(part, whole) -> Decimal:
    """``part / whole * 100`` to two decimals; 0 when ``whole`` is 0."""
    if not whole:
        return ZERO
    return (Decimal(part) / Decimal(whole) * 100).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class DailyCreated:
    """Orders placed on one local day."""
    date: str
    created: int = 0
    created_product_qty: int = 0
    created_revenue: Decimal = ZERO
    created_shipping_fee: Decimal = ZERO
    completed: int = 0
    completed_product_qty: int = 0
    completed_revenue: Decimal = ZERO
    completed_shipping_fee: Decimal = ZERO
    completed_buyer_shipping_fee: Decimal = ZERO
    cancelled: int = 0
    created_avg_order_value: Decimal = ZERO
    created_profit: Decimal = ZERO
    completed_profit: Decimal = ZERO
    conversion_rate: Decimal = ZERO


@dataclass
class DailyCompleted:
    """Money that moved on one local day (completions and returns)."""
    date: str
    product_qty: int = 0
    order_count: int = 0
    return_count: int = 0
    total_sales: Decimal = ZERO
    buyer_shipping_fee: Decimal = ZERO
    shipping_fee: Decimal = ZERO
    cod_fee: Decimal = ZERO
    insurance_fee: Decimal = ZERO
    service_fee: Decimal = ZERO
    transaction_fee: Decimal = ZERO
    commission: Decimal = ZERO
    points_used: Decimal = ZERO
    bank_transfer_fee: Decimal = ZERO
    fee_diff: Decimal = ZERO
    revenue: Decimal = ZERO
    actual_received: Decimal = ZERO
    actual_paid: Decimal = ZERO


@dataclass
class ValueBucket:
    label: str
    min: int
    max: Optional[int]
    count: int = 0
    revenue: Decimal = ZERO
    percent: Decimal = ZERO


@dataclass
class QuantityBucket:
    label: str
    min: int
    max: Optional[int]
    count: int = 0
    percent: Decimal = ZERO


@dataclass
class ValueDistribution:
    value_ranges: list[ValueBucket] = field(default_factory=list)
    quantity_ranges: list[QuantityBucket] = field(default_factory=list)


@dataclass
class ProductStats:
    item_id: object
    item_name: str
    image_url: Optional[str]
    price: Decimal = ZERO
    orders_count: int = 0
    orders_qty: int = 0
    cancelled_orders: int = 0
    cancelled_qty: int = 0
    completed_orders: int = 0
    completed_qty: int = 0
    shipping_orders: int = 0
    shipping_qty: int = 0
    returns_orders: int = 0
    returns_qty: int = 0
    not_shipped_orders: int = 0
    not_shipped_qty: int = 0
    cancelled_percent: Decimal = ZERO
    completed_percent: Decimal = ZERO
    shipping_percent: Decimal = ZERO
    returns_percent: Decimal = ZERO
    not_shipped_percent: Decimal = ZERO


@dataclass
class ProductPage:
    items: list[ProductStats]
    total: int
    page: int
    page_size: int
    total_pages: int


@dataclass
class StatusCount:
    status: str
    status_label: str
    count: int
    revenue: Decimal
    percent: Decimal


@dataclass
class DailyStatus:
    date: str
    confirmed_count: int = 0
    confirmed_amount: Decimal = ZERO
    packaging_count: int = 0
    packaging_amount: Decimal = ZERO
    shipping_count: int = 0
    shipping_amount: Decimal = ZERO
    completed_count: int = 0
    completed_amount: Decimal = ZERO
    cancelled_count: int = 0
    cancelled_amount: Decimal = ZERO
    returns_count: int = 0
    returns_amount: Decimal = ZERO
    total_count: int = 0
    total_amount: Decimal = ZERO


@dataclass
class StatusBreakdown:
    status_breakdown: list[StatusCount] = field(default_factory=list)
    daily_status_stats: list[DailyStatus] = field(default_factory=list)


@dataclass
class CancelReason:
    reason: str
    reason_code: str
    system_count: int
    buyer_count: int
    total_count: int
    system_percent: Decimal
    buyer_percent: Decimal
    total_percent: Decimal


@dataclass
class ReportTotals:
    created: int = 0
    completed: int = 0
    cancelled: int = 0
    total_revenue: Decimal = ZERO


class OrderAnalyticsEngine:
    """Marketplace order analytics.

    Works on normalised :class:`OrderRecord` sequences (no DB dependency) so
    it can be used as a pure calculation layer. Nothing is cached between
    calls; the same input always produces the same output.
    """

    def __init__(self, profit_model: Optional[ProfitModel] = None):
        self.profit_model = profit_model or ProfitModel()

    # ── Totals ──────────────────────────────────────────

    @staticmethod
    def totals(orders: Iterable[OrderRecord]) -> ReportTotals:
        t = ReportTotals()
        for o in orders:
            t.created += 1
            if o.is_completed:
                t.completed += 1
                t.total_revenue += o.total_amount
            if o.is_cancelled:
                t.cancelled += 1
        return t

    # ── Daily Created ───────────────────────────────────

    def daily_created(
        self,
        orders: Sequence[OrderRecord],
        start_ts: int,
        end_ts: int,
        tz_offset: int,
    ) -> list[DailyCreated]:
        """Orders bucketed by the local day they were placed."""
        days = {d: DailyCreated(date=d) for d in local_date_range(start_ts, end_ts, tz_offset)}

        for o in orders:
            day = days.get(local_date(o.create_time, tz_offset))
            if day is None:
                continue
            qty = o.quantity

            day.created += 1
            day.created_product_qty += qty
            day.created_revenue += o.total_amount
            day.created_shipping_fee += o.shipping_fee

            if o.is_completed:
                day.completed += 1
                day.completed_product_qty += qty
                day.completed_revenue += o.total_amount
                day.completed_shipping_fee += o.shipping_fee
                day.completed_buyer_shipping_fee += o.buyer_shipping_or_estimate
            if o.is_cancelled:
                day.cancelled += 1

        for day in days.values():
            if day.created:
                day.created_avg_order_value = (
                    day.created_revenue / day.created
                ).quantize(WHOLE, rounding=ROUND_HALF_UP)
            day.created_profit = self.profit_model.estimate(day.created_revenue, day.created_shipping_fee)
            day.completed_profit = self.profit_model.estimate(day.completed_revenue, day.completed_shipping_fee)
            day.conversion_rate = percent(day.completed, day.created)
        return list(days.values())

    # ── Daily Completed (cash flow) ─────────────────────

    @staticmethod
    def daily_completed(
        orders: Sequence[OrderRecord],
        start_ts: int,
        end_ts: int,
        tz_offset: int,
    ) -> list[DailyCompleted]:
        """Completions and returns bucketed by the local day of ``update_time``.

        ``orders`` should already include returns created before the window
        (see :meth:`OrderReader.fetch_returns`).
        """
        days = {d: DailyCompleted(date=d) for d in local_date_range(start_ts, end_ts, tz_offset)}

        for o in orders:
            if o.update_time is None or not (o.is_completed or o.is_return):
                continue
            day = days.get(local_date(o.update_time, tz_offset))
            if day is None:
                continue

            if o.is_return:
                day.return_count += 1
                continue

            s = ProfitCalculator.settle(o)
            day.order_count += 1
            day.product_qty += o.quantity
            day.total_sales += o.total_amount
            day.buyer_shipping_fee += o.buyer_shipping_fee
            day.shipping_fee += o.shipping_fee
            day.cod_fee += o.cod_fee
            day.insurance_fee += o.insurance_fee
            day.service_fee += o.service_fee
            day.transaction_fee += o.transaction_fee
            day.commission += o.commission
            day.points_used += o.points_used
            day.bank_transfer_fee += o.bank_transfer_fee
            day.fee_diff += s.fee_diff
            day.revenue += s.revenue
            day.actual_received += s.actual_received
            day.actual_paid += s.actual_paid

        return list(days.values())

    # ── Value & Quantity Distribution ───────────────────

    @staticmethod
    def value_distribution(orders: Sequence[OrderRecord]) -> ValueDistribution:
        """Histograms of completed orders by amount and by unit count."""
        values = [ValueBucket(label, lo, hi) for label, lo, hi in VALUE_RANGES]
        quantities = [QuantityBucket(label, lo, hi) for label, lo, hi in QUANTITY_RANGES]
        completed = [o for o in orders if o.is_completed]

        for o in completed:
            amount = max(o.total_amount, ZERO)
            for bucket in values:
                if amount >= bucket.min and (bucket.max is None or amount < bucket.max):
                    bucket.count += 1
                    bucket.revenue += amount
                    break

            # Orders without line items count as one unit
            qty = max(o.quantity, 1)
            for bucket in quantities:
                if qty >= bucket.min and (bucket.max is None or qty <= bucket.max):
                    bucket.count += 1
                    break

        total = len(completed)
        for bucket in values:
            bucket.percent = percent(bucket.count, total)
        for bucket in quantities:
            bucket.percent = percent(bucket.count, total)
        return ValueDistribution(value_ranges=values, quantity_ranges=quantities)

    # ── Products ────────────────────────────────────────

    @staticmethod
    def _product_bucket(status: str) -> str:
        if status in CANCELLED_STATUSES:
            return "cancelled"
        if status == OrderStatus.COMPLETED.value:
            return "completed"
        if status == OrderStatus.TO_RETURN.value:
            return "returns"
        if status in IN_SHIPPING_STATUSES:
            return "shipping"
        return "not_shipped"

    def products(
        self,
        orders: Sequence[OrderRecord],
        page: int = 1,
        page_size: int = 50,
        search: str = "",
    ) -> ProductPage:
        """Per-product performance across all statuses, ranked by units ordered."""
        if page < 1 or page_size < 1:
            raise ValueError(f"page and page_size must be >= 1, got {page} and {page_size}")
        products: dict[object, ProductStats] = {}

        for o in orders:
            bucket = self._product_bucket(o.status)
            # Units per product within this order, so each order counts once
            per_order: dict[object, int] = defaultdict(int)
            for item in o.items:
                p = products.get(item.item_id)
                if p is None:
                    p = ProductStats(
                        item_id=item.item_id,
                        item_name=item.item_name,
                        image_url=item.image_url,
                        price=item.unit_price,
                    )
                    products[item.item_id] = p
                elif item.unit_price > p.price:
                    p.price = item.unit_price
                per_order[item.item_id] += item.quantity

            for item_id, qty in per_order.items():
                p = products[item_id]
                p.orders_count += 1
                p.orders_qty += qty
                setattr(p, f"{bucket}_orders", getattr(p, f"{bucket}_orders") + 1)
                setattr(p, f"{bucket}_qty", getattr(p, f"{bucket}_qty") + qty)

        ranked = list(products.values())
        for p in ranked:
            p.cancelled_percent = percent(p.cancelled_qty, p.orders_qty)
            p.completed_percent = percent(p.completed_qty, p.orders_qty)
            p.shipping_percent = percent(p.shipping_qty, p.orders_qty)
            p.returns_percent = percent(p.returns_qty, p.orders_qty)
            p.not_shipped_percent = percent(p.not_shipped_qty, p.orders_qty)

        if search:
            needle = search.lower()
            ranked = [p for p in ranked if needle in p.item_name.lower()]
        ranked.sort(key=lambda p: p.orders_qty, reverse=True)

        total = len(ranked)
        start = (page - 1) * page_size
        return ProductPage(
            items=ranked[start:start + page_size],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size),
        )

    # ── Status Breakdown ────────────────────────────────

    @staticmethod
    def status_breakdown(
        orders: Sequence[OrderRecord],
        start_ts: int,
        end_ts: int,
        tz_offset: int,
    ) -> StatusBreakdown:
        """Global status histogram plus a daily series of display buckets."""
        counts: dict[str, dict] = defaultdict(lambda: {"count": 0, "revenue": ZERO})
        days = {d: DailyStatus(date=d) for d in local_date_range(start_ts, end_ts, tz_offset)}

        for o in orders:
            entry = counts[o.status]
            entry["count"] += 1
            entry["revenue"] += o.total_amount

            day = days.get(local_date(o.create_time, tz_offset))
            if day is None:
                continue
            day.total_count += 1
            day.total_amount += o.total_amount
            group = STATUS_GROUPS.get(o.status)
            if group:
                setattr(day, f"{group}_count", getattr(day, f"{group}_count") + 1)
                setattr(day, f"{group}_amount", getattr(day, f"{group}_amount") + o.total_amount)

        total = len(orders)
        breakdown = [
            StatusCount(
                status=status,
                status_label=status_label(status),
                count=data["count"],
                revenue=data["revenue"],
                percent=percent(data["count"], total),
            )
            for status, data in counts.items()
        ]
        breakdown.sort(key=lambda s: s.count, reverse=True)
        return StatusBreakdown(status_breakdown=breakdown, daily_status_stats=list(days.values()))

    # ── Cancel Reasons ──────────────────────────────────

    @staticmethod
    def cancel_reasons(orders: Sequence[OrderRecord]) -> list[CancelReason]:
        """Cancellations grouped by reason, split by who cancelled."""
        reasons: dict[str, dict] = defaultdict(lambda: {"system": 0, "buyer": 0})
        cancelled = [o for o in orders if o.is_cancelled]

        for o in cancelled:
            entry = reasons[o.cancel_reason]
            if o.cancelled_by_buyer:
                entry["buyer"] += 1
            else:
                entry["system"] += 1

        total = len(cancelled)
        result = []
        for code, data in reasons.items():
            count = data["system"] + data["buyer"]
            result.append(CancelReason(
                reason=cancel_reason_label(code),
                reason_code=code,
                system_count=data["system"],
                buyer_count=data["buyer"],
                total_count=count,
                system_percent=percent(data["system"], total),
                buyer_percent=percent(data["buyer"], total),
                total_percent=percent(count, total),
            ))
        result.sort(key=lambda r: r.total_count, reverse=True)
        return result
