"""Shop-Order-Reports CLI.

Usage:
    python -m cli report orders.json --shop-id 123 --start 2026-03-01 --end 2026-03-07
    python -m cli report orders.json --shop-id 123 --start 1772298000 --end 1772902799 --tab product --search áo
    python -m cli days --start 2026-03-01 --end 2026-03-07 --tz 7
    python -m cli labels status
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from order_reports.config import get_settings
from order_reports.schemas import REPORT_MODELS
from order_reports.services.errors import ReportError
from order_reports.services.labels import CANCEL_REASON_LABELS, STATUS_LABELS
from order_reports.services.local_date import local_date_range
from order_reports.services.order_store import InMemoryOrderStore
from order_reports.services.reports import OrderReportService, ReportRequest, ReportTab


def parse_ts(value: str, tz_offset: int, end_of_day: bool = False) -> int:
    """Epoch seconds, or a local ``YYYY-MM-DD`` (start or end of that day)."""
    if value.lstrip("-").isdigit():
        return int(value)
    day = date.fromisoformat(value)
    tz = timezone(timedelta(hours=tz_offset))
    moment = datetime(day.year, day.month, day.day, tzinfo=tz)
    if end_of_day:
        moment += timedelta(days=1, seconds=-1)
    return int(moment.timestamp())


def load_orders(path: Path) -> list[dict]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("orders", [])
    if not isinstance(data, list):
        raise ValueError(f"{path}: expected a list of orders")
    return data


async def run_report(orders: list[dict], request: ReportRequest) -> dict:
    service = OrderReportService.from_settings(InMemoryOrderStore(orders), get_settings())
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancel.set)
        except (NotImplementedError, RuntimeError):
            pass  # no signal handlers outside the main thread / on Windows
    result = await service.run(request, cancel)
    model = REPORT_MODELS[result.tab].model_validate(result)
    return model.model_dump(mode="json", by_alias=True)


def main(argv: Optional[list[str]] = None) -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="reports-cli",
        description="Shop-Order-Reports CLI",
    )
    sub = parser.add_subparsers(dest="command", help="Top-level command")

    # ── Report ───────────────────────────────────────────
    rep = sub.add_parser("report", help="Run an order report on a JSON order dump")
    rep.add_argument("orders", type=Path, help="JSON file: list of orders or {\"orders\": [...]}")
    rep.add_argument("--shop-id", type=int, required=True, help="Shop id")
    rep.add_argument("--start", required=True, help="Epoch seconds or local YYYY-MM-DD")
    rep.add_argument("--end", required=True, help="Epoch seconds or local YYYY-MM-DD (inclusive)")
    rep.add_argument("--tab", default=ReportTab.ALL.value, choices=[t.value for t in ReportTab])
    rep.add_argument("--page", type=int, default=1, help="Product tab page")
    rep.add_argument("--page-size", type=int, default=settings.default_product_page_size)
    rep.add_argument("--search", default="", help="Product name filter")
    rep.add_argument("--tz", type=int, default=settings.default_timezone_offset, help="Hours east of UTC")

    # ── Days ─────────────────────────────────────────────
    days = sub.add_parser("days", help="List the local days of a window")
    days.add_argument("--start", required=True, help="Epoch seconds or local YYYY-MM-DD")
    days.add_argument("--end", required=True, help="Epoch seconds or local YYYY-MM-DD (inclusive)")
    days.add_argument("--tz", type=int, default=settings.default_timezone_offset, help="Hours east of UTC")

    # ── Labels ───────────────────────────────────────────
    labels = sub.add_parser("labels", help="Print display label tables")
    labels.add_argument("table", choices=["status", "cancel"])

    args = parser.parse_args(argv)

    if args.command == "report":
        try:
            orders = load_orders(args.orders)
        except (OSError, ValueError) as e:
            print(f"Cannot read orders: {e}", file=sys.stderr)
            return 1
        request = ReportRequest(
            shop_id=args.shop_id,
            start_ts=parse_ts(args.start, args.tz),
            end_ts=parse_ts(args.end, args.tz, end_of_day=True),
            tab=args.tab,
            page=args.page,
            page_size=args.page_size,
            search=args.search,
            timezone_offset=args.tz,
        )
        try:
            payload = asyncio.run(run_report(orders, request))
        except ReportError as e:
            print(json.dumps({"error": e.message}, ensure_ascii=False), file=sys.stderr)
            return 2
        print(json.dumps(payload, indent=2, ensure_ascii=False))

    elif args.command == "days":
        start = parse_ts(args.start, args.tz)
        end = parse_ts(args.end, args.tz, end_of_day=True)
        for d in local_date_range(start, end, args.tz):
            print(d)

    elif args.command == "labels":
        table = STATUS_LABELS if args.table == "status" else CANCEL_REASON_LABELS
        for key, label in table.items():
            print(f"{key:<45} {label}")

    else:
        parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
