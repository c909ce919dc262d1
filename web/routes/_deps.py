"""Shared dependencies for API route modules."""
import time

from fastapi import Depends
from slowapi import Limiter
from slowapi.util import get_remote_address

from adreport.exceptions import QueryTimeoutError, ValidationError
from adreport.service import ReportService
from adreport.store import DuckDBStore, get_store
from adreport.validators import resolve_time_range

# Shared limiter instance
limiter = Limiter(key_func=get_remote_address)

# Track startup time for uptime calculation
START_TIME = time.time()


async def get_report_store() -> DuckDBStore:
    """Store used by the routes. Tests override this dependency."""
    return await get_store()


async def get_report_service(store: DuckDBStore = Depends(get_report_store)) -> ReportService:
    return ReportService(store)
