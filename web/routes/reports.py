"""Analytics tree and dashboard summary endpoints."""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from adreport.observability import get_logger
from adreport.service import ReportService
from web.config import RATE_LIMIT
from web.schemas import DashboardSummaryResponse, RowResponse
from ._deps import (
    limiter,
    get_report_service,
    resolve_time_range,
    QueryTimeoutError,
    ValidationError,
)

router = APIRouter()
logger = get_logger(__name__)


def _time_range(
    start_ts: Optional[int],
    end_ts: Optional[int],
    start_date: Optional[str],
    end_date: Optional[str],
):
    try:
        return resolve_time_range(start_ts, end_ts, start_date, end_date)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get(
    "/projects/{project_id}/analytics/hierarchy",
    response_model=List[RowResponse],
    response_model_exclude_none=True,
)
@limiter.limit(RATE_LIMIT)
async def get_hierarchical_data(
    request: Request,
    project_id: str,
    start_ts: Optional[int] = Query(None, description="Window start, epoch ms (inclusive)"),
    end_ts: Optional[int] = Query(None, description="Window end, epoch ms (inclusive)"),
    start_date: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    service: ReportService = Depends(get_report_service),
):
    """Account -> campaign -> group -> ad rows with attributed income."""
    start, end = _time_range(start_ts, end_ts, start_date, end_date)
    try:
        return await service.get_hierarchical_data(project_id, start, end)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except QueryTimeoutError as e:
        logger.warning(
            f"Hierarchy query timed out for {project_id}",
            extra={"project_id": project_id, "query": e.query, "timeout": e.timeout},
        )
        raise HTTPException(status_code=504, detail=e.message)


@router.get(
    "/projects/{project_id}/dashboard/summary",
    response_model=DashboardSummaryResponse,
)
@limiter.limit(RATE_LIMIT)
async def get_dashboard_summary(
    request: Request,
    project_id: str,
    start_ts: Optional[int] = Query(None, description="Window start, epoch ms (inclusive)"),
    end_ts: Optional[int] = Query(None, description="Window end, epoch ms (inclusive)"),
    start_date: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    service: ReportService = Depends(get_report_service),
):
    """Funnel, KPI cards, top campaigns and recent activity for the window."""
    start, end = _time_range(start_ts, end_ts, start_date, end_date)
    try:
        return await service.get_dashboard_summary(project_id, start, end)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except QueryTimeoutError as e:
        logger.warning(
            f"Summary query timed out for {project_id}",
            extra={"project_id": project_id, "query": e.query, "timeout": e.timeout},
        )
        raise HTTPException(status_code=504, detail=e.message)
