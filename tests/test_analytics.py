"""Order analytics engine tests."""

from decimal import Decimal

import pytest

from factories import WINDOW_END, WINDOW_START, make_order, ts
from order_reports.services.analytics import (
    QUANTITY_RANGES, VALUE_RANGES, OrderAnalyticsEngine, percent,
)
from order_reports.services.profit_calc import ProfitModel
from order_reports.services.records import OrderRecord

WINDOW = (WINDOW_START, WINDOW_END, 7)


def records(*raw: dict) -> list[OrderRecord]:
    return [OrderRecord.from_dict(r) for r in raw]


def item(item_id, name, qty=1, price=100000):
    return {"item_id": item_id, "item_name": name, "model_quantity_purchased": qty,
            "model_discounted_price": price}


@pytest.fixture
def engine():
    return OrderAnalyticsEngine()


@pytest.fixture
def mixed_orders():
    return records(
        make_order("A", ts(2026, 3, 1, 10), total_amount=150000, actual_shipping_fee=20000),
        make_order("B", ts(2026, 3, 1, 23, 30), status="CANCELLED", total_amount=300000,
                   items=[item(2, "Quần jean", qty=2, price=150000)]),
        # 00:10 local on March 2 is still March 1 in UTC
        make_order("C", ts(2026, 3, 2, 0, 10), status="UNPAID", total_amount=90000),
    )


class TestPercent:
    def test_two_decimals(self):
        assert percent(1, 3) == Decimal("33.33")
        assert percent(2, 3) == Decimal("66.67")

    def test_zero_denominator(self):
        assert percent(5, 0) == Decimal("0")


class TestTotals:
    def test_counts_and_revenue(self, engine, mixed_orders):
        t = engine.totals(mixed_orders)
        assert t.created == 3
        assert t.completed == 1
        assert t.cancelled == 1
        assert t.total_revenue == Decimal("150000")

    def test_empty(self, engine):
        t = engine.totals([])
        assert (t.created, t.completed, t.cancelled, t.total_revenue) == (0, 0, 0, Decimal("0"))


class TestDailyCreated:
    def test_one_row_per_local_day(self, engine, mixed_orders):
        rows = engine.daily_created(mixed_orders, *WINDOW)
        assert [r.date for r in rows] == ["2026-03-01", "2026-03-02", "2026-03-03"]

    def test_day_figures(self, engine, mixed_orders):
        day = engine.daily_created(mixed_orders, *WINDOW)[0]
        assert day.created == 2
        assert day.created_product_qty == 3
        assert day.created_revenue == Decimal("450000")
        assert day.created_shipping_fee == Decimal("20000")
        assert day.completed == 1
        assert day.completed_revenue == Decimal("150000")
        assert day.cancelled == 1
        assert day.created_avg_order_value == Decimal("225000")
        assert day.conversion_rate == Decimal("50.00")
        # 450000 * 0.48 - 20000 * 0.1
        assert day.created_profit == Decimal("214000")
        # 150000 * 0.48 - 20000 * 0.1
        assert day.completed_profit == Decimal("70000")

    def test_local_midnight_order(self, engine, mixed_orders):
        rows = engine.daily_created(mixed_orders, *WINDOW)
        assert rows[1].created == 1
        assert rows[1].completed == 0

    def test_empty_day_is_zero(self, engine, mixed_orders):
        day = engine.daily_created(mixed_orders, *WINDOW)[2]
        assert day.created == 0
        assert day.created_avg_order_value == Decimal("0")
        assert day.conversion_rate == Decimal("0")
        assert day.created_profit == Decimal("0")

    def test_conserves_order_count(self, engine, mixed_orders):
        rows = engine.daily_created(mixed_orders, *WINDOW)
        assert sum(r.created for r in rows) == len(mixed_orders)
        assert sum(r.completed for r in rows) == sum(1 for o in mixed_orders if o.is_completed)
        for r in rows:
            assert r.completed + r.cancelled <= r.created
            assert 0 <= r.conversion_rate <= 100

    def test_completed_buyer_shipping_falls_back_to_estimate(self, engine):
        rows = engine.daily_created(records(
            make_order("A", ts(2026, 3, 1, 9), estimated_shipping_fee=15000),
            make_order("B", ts(2026, 3, 1, 9), buyer_paid_shipping_fee=12000, estimated_shipping_fee=15000),
        ), *WINDOW)
        assert rows[0].completed_buyer_shipping_fee == Decimal("27000")

    def test_custom_profit_model(self, mixed_orders):
        engine = OrderAnalyticsEngine(ProfitModel(margin_rate=Decimal("0.5"), shipping_rate=Decimal("0")))
        day = engine.daily_created(mixed_orders, *WINDOW)[0]
        assert day.created_profit == Decimal("225000")

    def test_timezone_changes_buckets(self, engine, mixed_orders):
        # In UTC, C (00:10 local) belongs to the same day as A and B
        rows = engine.daily_created(mixed_orders, WINDOW_START, WINDOW_END, 0)
        assert rows[0].date == "2026-02-28"
        by_date = {r.date: r.created for r in rows}
        assert by_date["2026-03-01"] == 3


class TestDailyCompleted:
    def test_settlement_figures(self, engine):
        order = make_order(
            "A", ts(2026, 3, 1, 10), update_time=ts(2026, 3, 3, 9), total_amount=200000,
            buyer_paid_shipping_fee=30000, actual_shipping_fee=25000, cod_fee=2000,
            insurance_fee=1000, service_fee=5000, transaction_fee=3000, commission_fee=10000,
            coins=4000, buyer_txn_fee=500,
        )
        rows = engine.daily_completed(records(order), *WINDOW)
        assert [r.order_count for r in rows] == [0, 0, 1]
        day = rows[2]
        assert day.total_sales == Decimal("200000")
        assert day.product_qty == 1
        assert day.fee_diff == Decimal("3000")
        assert day.revenue == Decimal("186000")
        assert day.actual_received == Decimal("215500")
        assert day.actual_paid == Decimal("179500")

    def test_returns_counted_by_update_day(self, engine):
        rows = engine.daily_completed(records(
            make_order("R", ts(2026, 2, 20), status="TO_RETURN", update_time=ts(2026, 3, 2, 12)),
        ), *WINDOW)
        assert [r.return_count for r in rows] == [0, 1, 0]
        assert all(r.order_count == 0 for r in rows)
        assert rows[1].total_sales == Decimal("0")

    def test_ignores_other_statuses(self, engine, mixed_orders):
        rows = engine.daily_completed(mixed_orders, *WINDOW)
        assert sum(r.order_count for r in rows) == 1
        assert sum(r.return_count for r in rows) == 0

    def test_update_outside_window_dropped(self, engine):
        rows = engine.daily_completed(records(
            make_order("A", ts(2026, 3, 3, 20), update_time=ts(2026, 3, 5)),
        ), *WINDOW)
        assert sum(r.order_count for r in rows) == 0

    def test_single_completed_order(self, engine):
        rows = engine.daily_completed(records(make_order("A", ts(2026, 3, 2, 9))), *WINDOW)
        assert [r.order_count for r in rows] == [0, 1, 0]


class TestValueDistribution:
    def test_single_order(self, engine):
        dist = engine.value_distribution(records(make_order("A", ts(2026, 3, 1), total_amount=150000)))
        assert dist.value_ranges[0].count == 1
        assert dist.value_ranges[0].percent == Decimal("100.00")
        assert dist.quantity_ranges[0].label == "1"
        assert dist.quantity_ranges[0].count == 1
        assert dist.quantity_ranges[0].percent == Decimal("100.00")

    def test_value_boundaries(self, engine):
        amounts = [Decimal("199999.99"), 200000, 500000, 1999999, 2000000, 9000000]
        dist = engine.value_distribution(records(*(
            make_order(f"V{i}", ts(2026, 3, 1), total_amount=a) for i, a in enumerate(amounts)
        )))
        assert [b.count for b in dist.value_ranges] == [1, 1, 1, 1, 2]
        assert dist.value_ranges[-1].revenue == Decimal("11000000")

    def test_quantity_boundaries(self, engine):
        qtys = [1, 5, 6, 7, 8, 10, 11, 40]
        dist = engine.value_distribution(records(*(
            make_order(f"Q{i}", ts(2026, 3, 1), items=[item(1, "Áo", qty=q)]) for i, q in enumerate(qtys)
        )))
        by_label = {b.label: b.count for b in dist.quantity_ranges}
        assert by_label == {"1": 1, "2": 0, "3": 0, "4": 0, "5": 1, "6-7": 2, "8-10": 2, "11+": 2}

    def test_every_completed_order_lands_in_one_bucket(self, engine):
        orders = records(
            make_order("A", ts(2026, 3, 1), total_amount=0, items=[]),
            make_order("B", ts(2026, 3, 1), total_amount=-500),
            make_order("C", ts(2026, 3, 1), total_amount=750000),
            make_order("D", ts(2026, 3, 1), status="CANCELLED", total_amount=750000),
        )
        dist = engine.value_distribution(orders)
        assert sum(b.count for b in dist.value_ranges) == 3
        assert sum(b.count for b in dist.quantity_ranges) == 3

    def test_negative_amount_counts_as_zero_revenue(self, engine):
        dist = engine.value_distribution(records(
            make_order("A", ts(2026, 3, 1), total_amount=-500),
            make_order("B", ts(2026, 3, 1), total_amount=120000),
        ))
        first = dist.value_ranges[0]
        assert first.count == 2
        assert first.revenue == Decimal("120000")
        assert all(b.revenue >= 0 for b in dist.value_ranges)

    def test_non_finite_amount_lands_in_first_bucket(self, engine):
        dist = engine.value_distribution(records(make_order("A", ts(2026, 3, 1), total_amount="NaN")))
        assert dist.value_ranges[0].count == 1
        assert dist.value_ranges[0].revenue == Decimal("0")

    def test_bucket_labels(self, engine):
        dist = engine.value_distribution([])
        assert [b.label for b in dist.value_ranges] == [r[0] for r in VALUE_RANGES]
        assert [b.label for b in dist.quantity_ranges] == [r[0] for r in QUANTITY_RANGES]
        assert all(b.count == 0 and b.percent == 0 for b in dist.value_ranges)
        assert dist.value_ranges[-1].max is None


class TestProducts:
    @pytest.fixture
    def product_orders(self):
        return records(
            make_order("O1", ts(2026, 3, 1), items=[
                item(1, "Áo thun basic", qty=2, price=100000),
                item(2, "Quần jean", qty=1, price=300000),
            ]),
            make_order("O2", ts(2026, 3, 1), status="CANCELLED",
                       items=[item(1, "Áo thun đổi tên", qty=1, price=120000)]),
            make_order("O3", ts(2026, 3, 2), status="SHIPPED", items=[item(1, "Áo thun basic", qty=3)]),
            make_order("O4", ts(2026, 3, 2), status="TO_RETURN", items=[item(2, "Quần jean", qty=1)]),
            make_order("O5", ts(2026, 3, 3), status="UNPAID", items=[item(3, "Mũ lưỡi trai", qty=1)]),
        )

    def test_ranking(self, engine, product_orders):
        page = engine.products(product_orders)
        assert [p.item_id for p in page.items] == [1, 2, 3]
        assert page.total == 3
        assert page.total_pages == 1

    def test_status_buckets(self, engine, product_orders):
        p = engine.products(product_orders).items[0]
        assert p.item_name == "Áo thun basic"
        assert p.price == Decimal("120000")
        assert (p.orders_count, p.orders_qty) == (3, 6)
        assert (p.completed_orders, p.completed_qty) == (1, 2)
        assert (p.cancelled_orders, p.cancelled_qty) == (1, 1)
        assert (p.shipping_orders, p.shipping_qty) == (1, 3)
        assert p.completed_percent == Decimal("33.33")
        assert p.cancelled_percent == Decimal("16.67")
        assert p.shipping_percent == Decimal("50.00")
        assert p.not_shipped_percent == Decimal("0")

    def test_returns_bucket(self, engine, product_orders):
        p = engine.products(product_orders).items[1]
        assert (p.returns_orders, p.returns_qty) == (1, 1)
        assert p.returns_percent == Decimal("50.00")
        assert p.completed_percent == Decimal("50.00")

    def test_not_shipped(self, engine, product_orders):
        p = engine.products(product_orders).items[2]
        assert p.not_shipped_qty == 1
        assert p.not_shipped_percent == Decimal("100.00")

    def test_bucket_quantities_add_up(self, engine, product_orders):
        for p in engine.products(product_orders).items:
            assert p.orders_qty == (
                p.cancelled_qty + p.completed_qty + p.shipping_qty + p.returns_qty + p.not_shipped_qty
            )
            assert p.orders_count <= p.orders_qty

    def test_repeated_line_counts_order_once(self, engine):
        page = engine.products(records(make_order("O1", ts(2026, 3, 1), items=[
            item(1, "Áo", qty=2), item(1, "Áo", qty=3),
        ])))
        p = page.items[0]
        assert p.orders_count == 1
        assert p.orders_qty == 5

    def test_search_is_case_insensitive(self, engine, product_orders):
        page = engine.products(product_orders, search="QUẦN")
        assert [p.item_name for p in page.items] == ["Quần jean"]
        assert page.total == 1

    def test_search_without_match(self, engine, product_orders):
        page = engine.products(product_orders, search="giày")
        assert page.items == []
        assert page.total == 0
        assert page.total_pages == 0

    def test_pagination(self, engine, product_orders):
        first = engine.products(product_orders, page=1, page_size=2)
        second = engine.products(product_orders, page=2, page_size=2)
        beyond = engine.products(product_orders, page=3, page_size=2)
        assert [p.item_id for p in first.items] == [1, 2]
        assert [p.item_id for p in second.items] == [3]
        assert beyond.items == []
        assert first.total_pages == 2
        assert beyond.total == 3

    @pytest.mark.parametrize("page, page_size", [(1, 0), (0, 10), (-1, 10)])
    def test_rejects_bad_paging(self, engine, product_orders, page, page_size):
        with pytest.raises(ValueError, match="page"):
            engine.products(product_orders, page=page, page_size=page_size)

    def test_ties_keep_first_seen_order(self, engine):
        page = engine.products(records(
            make_order("O1", ts(2026, 3, 1), items=[item(9, "Túi"), item(4, "Ví")]),
        ))
        assert [p.item_id for p in page.items] == [9, 4]


class TestStatusBreakdown:
    def test_histogram(self, engine, mixed_orders):
        result = engine.status_breakdown(mixed_orders, *WINDOW)
        statuses = {s.status: s for s in result.status_breakdown}
        assert set(statuses) == {"COMPLETED", "CANCELLED", "UNPAID"}
        assert statuses["CANCELLED"].status_label == "Đã hủy"
        assert statuses["CANCELLED"].revenue == Decimal("300000")
        assert statuses["UNPAID"].percent == Decimal("33.33")
        assert sum(s.count for s in result.status_breakdown) == 3

    def test_sorted_by_count(self, engine):
        result = engine.status_breakdown(records(
            make_order("A", ts(2026, 3, 1), status="UNPAID"),
            make_order("B", ts(2026, 3, 1), status="SHIPPED"),
            make_order("C", ts(2026, 3, 1), status="SHIPPED"),
        ), *WINDOW)
        assert [s.status for s in result.status_breakdown] == ["SHIPPED", "UNPAID"]

    def test_daily_groups(self, engine):
        result = engine.status_breakdown(records(
            make_order("A", ts(2026, 3, 1), status="PROCESSED", total_amount=100000),
            make_order("B", ts(2026, 3, 1), status="READY_TO_SHIP", total_amount=50000),
            make_order("C", ts(2026, 3, 1), status="TO_RETURN"),
            make_order("D", ts(2026, 3, 1), status="IN_CANCEL"),
        ), *WINDOW)
        day = result.daily_status_stats[0]
        assert day.packaging_count == 2
        assert day.packaging_amount == Decimal("150000")
        assert day.returns_count == 1
        assert day.cancelled_count == 1
        assert day.total_count == 4

    def test_unknown_status(self, engine):
        result = engine.status_breakdown(records(make_order("A", ts(2026, 3, 2), status="WEIRD")), *WINDOW)
        assert result.status_breakdown[0].status_label == "WEIRD"
        day = result.daily_status_stats[1]
        assert day.total_count == 1
        assert day.confirmed_count + day.completed_count + day.cancelled_count == 0

    def test_empty_window(self, engine):
        result = engine.status_breakdown([], *WINDOW)
        assert result.status_breakdown == []
        assert len(result.daily_status_stats) == 3
        assert all(d.total_count == 0 for d in result.daily_status_stats)


class TestCancelReasons:
    def test_grouping_and_split(self, engine):
        result = engine.cancel_reasons(records(
            make_order("A", ts(2026, 3, 1), status="CANCELLED", cancel_reason="out_of_stock", cancel_by="seller"),
            make_order("B", ts(2026, 3, 1), status="CANCELLED",
                       buyer_cancel_reason="Found Cheaper Elsewhere", cancel_by="buyer"),
            make_order("C", ts(2026, 3, 1), status="CANCELLED",
                       buyer_cancel_reason="Found Cheaper Elsewhere", cancel_by="customer"),
            make_order("D", ts(2026, 3, 1), status="IN_CANCEL"),
            make_order("E", ts(2026, 3, 1), status="COMPLETED", cancel_reason="out_of_stock"),
        ))
        assert [r.reason_code for r in result] == ["Found Cheaper Elsewhere", "out_of_stock", "other"]
        top = result[0]
        assert top.reason == "Tìm được giá rẻ hơn ở nơi khác"
        assert (top.buyer_count, top.system_count, top.total_count) == (2, 0, 2)
        assert top.total_percent == Decimal("50.00")
        assert top.buyer_percent == Decimal("50.00")
        assert result[1].reason == "Hết hàng"
        assert result[1].system_percent == Decimal("25.00")
        assert result[2].reason == "Lý do khác"
        assert sum(r.total_count for r in result) == 4

    def test_unmapped_reason_keeps_raw_text(self, engine):
        result = engine.cancel_reasons(records(
            make_order("A", ts(2026, 3, 1), status="CANCELLED", cancel_reason="Weird reason"),
        ))
        assert result[0].reason == "Weird reason"
        assert result[0].reason_code == "Weird reason"

    def test_no_cancellations(self, engine):
        assert engine.cancel_reasons(records(make_order("A", ts(2026, 3, 1)))) == []


class TestIdempotence:
    def test_same_input_same_output(self, engine, mixed_orders):
        assert engine.daily_created(mixed_orders, *WINDOW) == engine.daily_created(mixed_orders, *WINDOW)
        assert engine.products(mixed_orders) == engine.products(mixed_orders)
        assert engine.status_breakdown(mixed_orders, *WINDOW) == engine.status_breakdown(mixed_orders, *WINDOW)
        assert engine.cancel_reasons(mixed_orders) == engine.cancel_reasons(mixed_orders)
