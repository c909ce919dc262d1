"""
FastAPI web application for the ad reporting API.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from adreport.config import config, validate_config, ConfigurationError
from adreport.observability import setup_logging, get_logger
from adreport.store import get_store, close_store
from web.config import VERSION
from web.routes import router as api_router
from web.routes._deps import limiter
from web.middleware import RequestLoggingMiddleware

# Configure structured logging
# Use JSON format in production (LOG_FORMAT=json), human-readable otherwise
setup_logging(level=config.logging.level, json_format=config.logging.json_format)
logger = get_logger(__name__)

app = FastAPI(
    title="Ad Report API",
    description="Ad performance analytics with sales attribution",
    version=VERSION,
)

# Routes and app share one limiter so limits apply consistently
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}")
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": "Too many requests. Please try again later.",
            "retry_after": exc.detail
        }
    )


# Add request logging middleware (adds correlation IDs and timing)
app.add_middleware(RequestLoggingMiddleware)

# Add Gzip compression (min 500 bytes to compress)
app.add_middleware(GZipMiddleware, minimum_size=500)

app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info("Ad Report API starting...")

    # Validate configuration early - fail fast with clear errors
    try:
        validate_config()
        logger.info("Configuration validated")
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        raise SystemExit(1)

    store = await get_store()
    stats = await store.get_stats()
    logger.info(
        f"DuckDB ready: {stats['ad_daily_stats']} daily stats, "
        f"{stats['ads']} ads, {stats['sales']} sales, {stats['leads']} leads"
    )


@app.on_event("shutdown")
async def shutdown_event():
    await close_store()
    logger.info("Ad Report API stopped")


if __name__ == "__main__":
    import uvicorn
    from web.config import WEB_HOST, WEB_PORT

    uvicorn.run("web.main:app", host=WEB_HOST, port=WEB_PORT)
