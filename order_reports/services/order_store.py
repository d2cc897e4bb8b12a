"""Order store reader.

Backends silently cap how many rows a single request returns, so every scan
walks fixed-size pages until a short page marks the end of the data. A scan
either returns every matching order or raises; partial results never leave
this module.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from order_reports.models import ShopeeOrder
from order_reports.services.errors import ScanBudgetExceeded, ScanCancelled, StoreReadError
from order_reports.services.records import OrderStatus

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000


class TimeField(str, Enum):
    CREATE_TIME = "create_time"
    UPDATE_TIME = "update_time"


@dataclass(frozen=True)
class ScanQuery:
    """Shop + inclusive time-window predicate, optionally narrowed to one status."""
    shop_id: int
    start_ts: int
    end_ts: int
    time_field: TimeField = TimeField.CREATE_TIME
    status: Optional[str] = None

    def matches(self, raw: dict) -> bool:
        ts = raw.get(self.time_field.value)
        if ts is None:
            return False
        if int(raw.get("shop_id") or 0) != self.shop_id:
            return False
        if self.status is not None and raw.get("order_status") != self.status:
            return False
        return self.start_ts <= int(ts) <= self.end_ts


class OrderStore:
    """Range-filtered, offset-paginated source of raw order dicts.

    Pages are ordered by the query's time field ascending, then by
    ``order_sn`` so consecutive offsets never overlap.
    """

    async def fetch_page(self, query: ScanQuery, offset: int, limit: int) -> list[dict]:
        raise NotImplementedError


class SqlOrderStore(OrderStore):
    """Reads the synced ``apishopee_orders`` table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def fetch_page(self, query: ScanQuery, offset: int, limit: int) -> list[dict]:
        column = getattr(ShopeeOrder, query.time_field.value)
        stmt = select(ShopeeOrder).where(
            ShopeeOrder.shop_id == query.shop_id,
            column >= query.start_ts,
            column <= query.end_ts,
        )
        if query.status is not None:
            stmt = stmt.where(ShopeeOrder.order_status == query.status)
        stmt = stmt.order_by(column.asc(), ShopeeOrder.order_sn.asc()).offset(offset).limit(limit)
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreReadError(f"Order query failed: {e}") from e
        return [row.to_dict() for row in result.scalars().all()]


class InMemoryOrderStore(OrderStore):
    """Order dump held in memory (CLI runs against JSON exports)."""

    def __init__(self, orders: Sequence[dict]):
        self._orders = list(orders)
        # Sorted matches per query, filled on the first page
        self._matches: dict[ScanQuery, list[dict]] = {}

    def _rows(self, query: ScanQuery) -> list[dict]:
        rows = self._matches.get(query)
        if rows is None:
            field = query.time_field.value
            rows = sorted(
                (o for o in self._orders if query.matches(o)),
                key=lambda o: (int(o[field]), str(o.get("order_sn", ""))),
            )
            self._matches[query] = rows
        return rows

    async def fetch_page(self, query: ScanQuery, offset: int, limit: int) -> list[dict]:
        return self._rows(query)[offset:offset + limit]


async def iter_pages(
    store: OrderStore,
    query: ScanQuery,
    page_size: int = DEFAULT_PAGE_SIZE,
    *,
    page_timeout: Optional[float] = None,
    max_pages: int = 0,
    cancel: Optional[asyncio.Event] = None,
) -> AsyncIterator[list[dict]]:
    """Yield non-empty pages of ``query`` until the store runs dry.

    The first page shorter than ``page_size`` ends the scan. Each fetch waits
    for the previous one since the next offset depends on it. ``cancel`` is
    checked between pages; ``max_pages`` (0 = unlimited) bounds the number
    of fetches.
    """
    offset = 0
    fetched = 0
    while True:
        if cancel is not None and cancel.is_set():
            raise ScanCancelled(f"Order scan for shop {query.shop_id} cancelled at offset {offset}")
        if max_pages and fetched >= max_pages:
            raise ScanBudgetExceeded(
                f"Order scan for shop {query.shop_id} exceeded the budget of {max_pages} pages"
            )
        try:
            page = await asyncio.wait_for(store.fetch_page(query, offset, page_size), page_timeout)
        except asyncio.TimeoutError as e:
            raise StoreReadError(
                f"Order store page at offset {offset} timed out after {page_timeout}s"
            ) from e
        fetched += 1
        logger.debug(f"Page {fetched} at offset {offset}: {len(page)} orders")

        if page:
            yield page
        if len(page) < page_size:
            return
        offset += page_size


class OrderReader:
    """Full-window scans over an :class:`OrderStore`."""

    def __init__(
        self,
        store: OrderStore,
        page_size: int = DEFAULT_PAGE_SIZE,
        page_timeout: Optional[float] = None,
        max_pages: int = 0,
    ):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.store = store
        self.page_size = page_size
        self.page_timeout = page_timeout
        self.max_pages = max_pages

    def pages(self, query: ScanQuery, cancel: Optional[asyncio.Event] = None) -> AsyncIterator[list[dict]]:
        return iter_pages(
            self.store,
            query,
            self.page_size,
            page_timeout=self.page_timeout,
            max_pages=self.max_pages,
            cancel=cancel,
        )

    async def fetch_all(self, query: ScanQuery, cancel: Optional[asyncio.Event] = None) -> list[dict]:
        orders: list[dict] = []
        pages = 0
        async for page in self.pages(query, cancel):
            orders.extend(page)
            pages += 1
        logger.info(
            f"Fetched {len(orders)} orders in {pages} pages "
            f"(shop={query.shop_id}, {query.time_field.value} {query.start_ts}..{query.end_ts}"
            f"{', status=' + query.status if query.status else ''})"
        )
        return orders

    async def fetch_created(
        self, shop_id: int, start_ts: int, end_ts: int, cancel: Optional[asyncio.Event] = None,
    ) -> list[dict]:
        """Orders created inside the window, oldest first."""
        return await self.fetch_all(ScanQuery(shop_id, start_ts, end_ts), cancel)

    async def fetch_returns(
        self, shop_id: int, start_ts: int, end_ts: int, cancel: Optional[asyncio.Event] = None,
    ) -> list[dict]:
        """Orders that moved to TO_RETURN inside the window, whenever they were created."""
        query = ScanQuery(
            shop_id, start_ts, end_ts,
            time_field=TimeField.UPDATE_TIME,
            status=OrderStatus.TO_RETURN.value,
        )
        return await self.fetch_all(query, cancel)
