"""Order reports API.

The same report is served for GET (query string) and POST (JSON body).
"""

import asyncio
import contextlib
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from order_reports.config import Settings, get_settings
from order_reports.database import get_db
from order_reports.schemas import REPORT_MODELS, ErrorOut, ReportOut, ReportQuery
from order_reports.services.auth import authorize_shop, get_token_claims
from order_reports.services.order_store import SqlOrderStore
from order_reports.services.reports import OrderReportService, ReportRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])

ERROR_RESPONSES = {
    code: {"model": ErrorOut}
    for code in (400, 401, 403, 422, 429, 499, 500, 502)
}

DISCONNECT_POLL_SECONDS = 0.5
WATCHER_TASK_NAME = "report-disconnect-watcher"


def get_report_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> OrderReportService:
    return OrderReportService.from_settings(SqlOrderStore(db), settings)


async def watch_disconnect(request: Request, cancel: asyncio.Event, interval: float = DISCONNECT_POLL_SECONDS):
    """Set ``cancel`` once the client has gone away."""
    while not cancel.is_set():
        if await request.is_disconnected():
            logger.info(f"Client disconnected from {request.url.path}, cancelling scan")
            cancel.set()
            return
        await asyncio.sleep(interval)


async def _run_report(
    http_request: Request,
    query: ReportQuery,
    service: OrderReportService,
    claims: Optional[dict],
):
    request = service.validate(ReportRequest(**query.model_dump()))
    authorize_shop(claims, request.shop_id)

    cancel = asyncio.Event()
    watcher = asyncio.create_task(watch_disconnect(http_request, cancel), name=WATCHER_TASK_NAME)
    try:
        result = await service.run(request, cancel)
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher
    return REPORT_MODELS[result.tab].model_validate(result)


@router.get("/orders", response_model=ReportOut, responses=ERROR_RESPONSES)
async def get_order_report(
    http_request: Request,
    shop_id: Optional[int] = Query(None, description="Shop to report on"),
    start_ts: Optional[int] = Query(None, description="Window start, epoch seconds (inclusive)"),
    end_ts: Optional[int] = Query(None, description="Window end, epoch seconds (inclusive)"),
    tab: Optional[str] = Query(None, description="created|completed|value|product|status|cancel|all"),
    page: Optional[int] = Query(None, description="Product tab page"),
    page_size: Optional[int] = Query(None, description="Product tab page size"),
    search: Optional[str] = Query(None, description="Product name filter"),
    timezone_offset: Optional[int] = Query(None, description="Hours east of UTC"),
    service: OrderReportService = Depends(get_report_service),
    claims: Optional[dict] = Depends(get_token_claims),
):
    """Order analytics for one shop and time window."""
    query = ReportQuery(
        shop_id=shop_id,
        start_ts=start_ts,
        end_ts=end_ts,
        tab=tab,
        page=page,
        page_size=page_size,
        search=search,
        timezone_offset=timezone_offset,
    )
    return await _run_report(http_request, query, service, claims)


@router.post("/orders", response_model=ReportOut, responses=ERROR_RESPONSES)
async def post_order_report(
    http_request: Request,
    query: ReportQuery,
    service: OrderReportService = Depends(get_report_service),
    claims: Optional[dict] = Depends(get_token_claims),
):
    """Order analytics for one shop and time window (JSON body)."""
    return await _run_report(http_request, query, service, claims)
