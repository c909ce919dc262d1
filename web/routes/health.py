"""Health check endpoint."""
import time

from fastapi import APIRouter, Depends, Request

from adreport.exceptions import ReportError
from adreport.observability import Timer, get_correlation_id, get_logger
from adreport.store import DuckDBStore
from web.config import HEALTH_RATE_LIMIT, VERSION
from web.schemas import HealthResponse
from ._deps import limiter, get_report_store, START_TIME

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
@limiter.limit(HEALTH_RATE_LIMIT)
async def health_check(request: Request, store: DuckDBStore = Depends(get_report_store)):
    """Health check endpoint for Docker/load balancer monitoring."""
    uptime_seconds = int(time.time() - START_TIME)

    try:
        with Timer("health_check_db") as timer:
            stats = await store.get_stats()
        total_queries = stats.pop("total_queries", None)
        store_stats = {
            "status": "connected",
            "latency_ms": round(timer.elapsed_ms, 2),
            "tables": stats,
            "total_queries": total_queries,
        }
    except ReportError as e:
        logger.warning(f"Store health check failed: {e}")
        store_stats = {"status": f"error: {e}"}

    return {
        "status": "healthy" if store_stats["status"] == "connected" else "degraded",
        "version": VERSION,
        "uptime_seconds": uptime_seconds,
        "correlation_id": get_correlation_id(),
        "store": store_stats,
    }
