"""Pydantic schemas for the order reports API.

Responses use camelCase keys. Each tab has its own envelope model and the
``tab`` field discriminates between them.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}


# ── Request ──────────────────────────────────────────────
class ReportQuery(BaseModel):
    shop_id: Optional[int] = None
    start_ts: Optional[int] = None
    end_ts: Optional[int] = None
    tab: Optional[str] = None
    page: Optional[int] = None
    page_size: Optional[int] = None
    search: Optional[str] = None
    timezone_offset: Optional[int] = None


class ErrorOut(BaseModel):
    error: str


# ── Totals ───────────────────────────────────────────────
class TotalsOut(CamelModel):
    created: int
    completed: int
    cancelled: int
    total_revenue: float


# ── Daily created ────────────────────────────────────────
class DailyCreatedOut(CamelModel):
    date: str
    created: int
    created_product_qty: int
    created_revenue: float
    created_shipping_fee: float
    completed: int
    completed_product_qty: int
    completed_revenue: float
    completed_shipping_fee: float
    completed_buyer_shipping_fee: float
    cancelled: int
    created_avg_order_value: float
    created_profit: float
    completed_profit: float
    conversion_rate: float


# ── Daily completed ──────────────────────────────────────
class DailyCompletedOut(CamelModel):
    date: str
    product_qty: int
    order_count: int
    return_count: int
    total_sales: float
    buyer_shipping_fee: float
    shipping_fee: float
    cod_fee: float
    insurance_fee: float
    service_fee: float
    transaction_fee: float
    commission: float
    points_used: float
    bank_transfer_fee: float
    fee_diff: float
    revenue: float
    actual_received: float
    actual_paid: float


# ── Value / quantity distribution ────────────────────────
class ValueBucketOut(CamelModel):
    label: str
    min: int
    max: Optional[int]
    count: int
    revenue: float
    percent: float


class QuantityBucketOut(CamelModel):
    label: str
    min: int
    max: Optional[int]
    count: int
    percent: float


class ValueDistributionOut(CamelModel):
    value_ranges: list[ValueBucketOut]
    quantity_ranges: list[QuantityBucketOut]


# ── Products ─────────────────────────────────────────────
class ProductStatsOut(CamelModel):
    item_id: Union[int, str]
    item_name: str
    image_url: Optional[str]
    price: float
    orders_count: int
    orders_qty: int
    cancelled_orders: int
    cancelled_qty: int
    completed_orders: int
    completed_qty: int
    shipping_orders: int
    shipping_qty: int
    returns_orders: int
    returns_qty: int
    not_shipped_orders: int
    not_shipped_qty: int
    cancelled_percent: float
    completed_percent: float
    shipping_percent: float
    returns_percent: float
    not_shipped_percent: float


class ProductPageOut(CamelModel):
    items: list[ProductStatsOut]
    total: int
    page: int
    page_size: int
    total_pages: int


# ── Status ───────────────────────────────────────────────
class StatusCountOut(CamelModel):
    status: str
    status_label: str
    count: int
    revenue: float
    percent: float


class DailyStatusOut(CamelModel):
    date: str
    confirmed_count: int
    confirmed_amount: float
    packaging_count: int
    packaging_amount: float
    shipping_count: int
    shipping_amount: float
    completed_count: int
    completed_amount: float
    cancelled_count: int
    cancelled_amount: float
    returns_count: int
    returns_amount: float
    total_count: int
    total_amount: float


class StatusBreakdownOut(CamelModel):
    status_breakdown: list[StatusCountOut]
    daily_status_stats: list[DailyStatusOut]


# ── Cancel reasons ───────────────────────────────────────
class CancelReasonOut(CamelModel):
    reason: str
    reason_code: str
    system_count: int
    buyer_count: int
    total_count: int
    system_percent: float
    buyer_percent: float
    total_percent: float


# ── Combined view ────────────────────────────────────────
class AllReportsOut(CamelModel):
    daily_created: list[DailyCreatedOut]
    daily_completed: list[DailyCompletedOut]
    value_ranges: ValueDistributionOut
    products: ProductPageOut
    status_breakdown: StatusBreakdownOut
    cancel_reasons: list[CancelReasonOut]


# ── Envelopes ────────────────────────────────────────────
class CreatedReportOut(CamelModel):
    tab: Literal["created"]
    data: list[DailyCreatedOut]
    totals: TotalsOut


class CompletedReportOut(CamelModel):
    tab: Literal["completed"]
    data: list[DailyCompletedOut]
    totals: TotalsOut


class ValueReportOut(CamelModel):
    tab: Literal["value"]
    data: ValueDistributionOut
    totals: TotalsOut


class ProductReportOut(CamelModel):
    tab: Literal["product"]
    data: ProductPageOut
    totals: TotalsOut


class StatusReportOut(CamelModel):
    tab: Literal["status"]
    data: StatusBreakdownOut
    totals: TotalsOut


class CancelReportOut(CamelModel):
    tab: Literal["cancel"]
    data: list[CancelReasonOut]
    totals: TotalsOut


class AllReportOut(CamelModel):
    tab: Literal["all"]
    data: AllReportsOut
    totals: TotalsOut


ReportOut = Annotated[
    Union[
        CreatedReportOut, CompletedReportOut, ValueReportOut, ProductReportOut,
        StatusReportOut, CancelReportOut, AllReportOut,
    ],
    Field(discriminator="tab"),
]

REPORT_MODELS: dict[str, type[CamelModel]] = {
    "created": CreatedReportOut,
    "completed": CompletedReportOut,
    "value": ValueReportOut,
    "product": ProductReportOut,
    "status": StatusReportOut,
    "cancel": CancelReportOut,
    "all": AllReportOut,
}
