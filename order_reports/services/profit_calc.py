"""Seller settlement and profit estimation for marketplace orders."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from order_reports.services.records import OrderRecord

WHOLE = Decimal("1")


@dataclass(frozen=True)
class Settlement:
    """Net settlement of one completed order.

    Each figure depends on the previous one, so they are always computed
    in declaration order.
    """
    fee_diff: Decimal
    revenue: Decimal
    actual_received: Decimal
    actual_paid: Decimal


@dataclass(frozen=True)
class ProfitModel:
    """Fixed-margin heuristic: ``revenue * margin_rate - shipping * shipping_rate``.

    Not a ledger reconciliation; the rates come from configuration.
    """
    margin_rate: Decimal = Decimal("0.48")
    shipping_rate: Decimal = Decimal("0.1")

    def estimate(self, revenue: Decimal, shipping: Decimal) -> Decimal:
        profit = revenue * self.margin_rate - shipping * self.shipping_rate
        return profit.quantize(WHOLE, rounding=ROUND_HALF_UP)


class ProfitCalculator:
    """Settlement arithmetic shared by the cash-flow reports."""

    @staticmethod
    def settle(order: OrderRecord) -> Settlement:
        fee_diff = order.buyer_shipping_fee - order.shipping_fee - order.cod_fee
        revenue = order.total_amount - order.commission - order.points_used
        actual_received = order.buyer_shipping_fee + revenue - order.bank_transfer_fee
        actual_paid = (
            actual_received
            - order.shipping_fee
            - order.cod_fee
            - order.insurance_fee
            - order.service_fee
            - order.transaction_fee
        )
        return Settlement(
            fee_diff=fee_diff,
            revenue=revenue,
            actual_received=actual_received,
            actual_paid=actual_paid,
        )
