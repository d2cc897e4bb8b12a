"""Typed order records built from raw synced order rows.

Marketplace payloads are sparse: fee fields are often null and line items
may omit their quantity. Everything is normalised here so the aggregation
layer never sees a missing number.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

ZERO = Decimal("0")
UNNAMED_PRODUCT = "Không tên"


class OrderStatus(str, Enum):
    UNPAID = "UNPAID"
    READY_TO_SHIP = "READY_TO_SHIP"
    PROCESSED = "PROCESSED"
    SHIPPED = "SHIPPED"
    TO_CONFIRM_RECEIVE = "TO_CONFIRM_RECEIVE"
    COMPLETED = "COMPLETED"
    TO_RETURN = "TO_RETURN"
    IN_CANCEL = "IN_CANCEL"
    CANCELLED = "CANCELLED"
    INVOICE_PENDING = "INVOICE_PENDING"
    PENDING = "PENDING"


CANCELLED_STATUSES = frozenset({OrderStatus.CANCELLED.value, OrderStatus.IN_CANCEL.value})
IN_SHIPPING_STATUSES = frozenset({
    OrderStatus.SHIPPED.value,
    OrderStatus.READY_TO_SHIP.value,
    OrderStatus.TO_CONFIRM_RECEIVE.value,
})
BUYER_CANCEL_SOURCES = frozenset({"buyer", "customer"})


def _amount(raw: dict, *keys: str) -> Decimal:
    """First finite non-zero amount among ``keys``, else 0."""
    for key in keys:
        val = raw.get(key)
        if val is None or val == "":
            continue
        try:
            amount = Decimal(str(val))
        except (InvalidOperation, ValueError):
            continue
        if amount.is_finite() and amount:
            return amount
    return ZERO


def _timestamp(val: Any) -> Optional[int]:
    if val is None or val == "":
        return None
    try:
        ts = int(val)
    except (TypeError, ValueError):
        return None
    return ts or None


@dataclass(frozen=True)
class LineItem:
    item_id: Any
    item_name: str
    image_url: Optional[str]
    quantity: int
    unit_price: Decimal

    @classmethod
    def from_dict(cls, raw: dict) -> LineItem:
        image_info = raw.get("image_info") or {}
        qty = raw.get("model_quantity_purchased", raw.get("quantity_purchased"))
        try:
            quantity = int(qty or 0) or 1
        except (TypeError, ValueError):
            quantity = 1
        item_id = raw.get("item_id")
        return cls(
            item_id=item_id if item_id is not None else "unknown",
            item_name=raw.get("item_name") or UNNAMED_PRODUCT,
            image_url=image_info.get("image_url") or raw.get("image") or None,
            quantity=quantity,
            unit_price=_amount(raw, "model_discounted_price", "discounted_unit_price"),
        )


@dataclass(frozen=True)
class OrderRecord:
    """One order as seen by the aggregations."""
    order_sn: str
    shop_id: int
    create_time: int
    update_time: Optional[int]
    status: str
    total_amount: Decimal = ZERO
    items: tuple[LineItem, ...] = field(default_factory=tuple)

    shipping_fee: Decimal = ZERO              # actual, falling back to estimated
    buyer_shipping_fee: Decimal = ZERO        # buyer-paid
    buyer_shipping_or_estimate: Decimal = ZERO
    cod_fee: Decimal = ZERO
    insurance_fee: Decimal = ZERO
    service_fee: Decimal = ZERO
    transaction_fee: Decimal = ZERO
    commission: Decimal = ZERO
    points_used: Decimal = ZERO
    bank_transfer_fee: Decimal = ZERO

    cancel_reason: str = "other"
    cancel_by: str = "unknown"

    @property
    def quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED.value

    @property
    def is_cancelled(self) -> bool:
        return self.status in CANCELLED_STATUSES

    @property
    def is_return(self) -> bool:
        return self.status == OrderStatus.TO_RETURN.value

    @property
    def cancelled_by_buyer(self) -> bool:
        return self.cancel_by in BUYER_CANCEL_SOURCES

    @classmethod
    def from_dict(cls, raw: dict) -> OrderRecord:
        items = tuple(LineItem.from_dict(i) for i in (raw.get("item_list") or []) if isinstance(i, dict))
        return cls(
            order_sn=str(raw.get("order_sn") or raw.get("order_id") or ""),
            shop_id=int(raw.get("shop_id") or 0),
            create_time=_timestamp(raw.get("create_time")) or 0,
            update_time=_timestamp(raw.get("update_time")),
            status=str(raw.get("order_status") or "UNKNOWN"),
            total_amount=_amount(raw, "total_amount"),
            items=items,
            shipping_fee=_amount(raw, "actual_shipping_fee", "estimated_shipping_fee"),
            buyer_shipping_fee=_amount(raw, "buyer_paid_shipping_fee"),
            buyer_shipping_or_estimate=_amount(raw, "buyer_paid_shipping_fee", "estimated_shipping_fee"),
            cod_fee=_amount(raw, "cod_fee"),
            insurance_fee=_amount(raw, "insurance_fee"),
            service_fee=_amount(raw, "service_fee", "shopee_fee"),
            transaction_fee=_amount(raw, "transaction_fee", "card_txn_fee"),
            commission=_amount(raw, "commission_fee", "seller_discount"),
            points_used=_amount(raw, "coins", "voucher_from_seller"),
            bank_transfer_fee=_amount(raw, "buyer_txn_fee"),
            cancel_reason=str(raw.get("buyer_cancel_reason") or raw.get("cancel_reason") or "other"),
            cancel_by=str(raw.get("cancel_by") or "unknown"),
        )
