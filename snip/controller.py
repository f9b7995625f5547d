import logging
import os
import resource
import time
from datetime import datetime, timezone
from typing import Annotated, Optional

from asyncpg import Connection, Pool
from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from redis.asyncio import Redis

from snip.cache import pingCache
from snip.config import APP_NAME, APP_VERSION, Settings
from snip.dependencies import (
    get_db_conn,
    get_db_pool,
    get_rate_limiter,
    get_redis,
    get_settings,
)
from snip.models import (
    ClickCounts,
    DatabaseStats,
    HealthStatus,
    Metrics,
    ProcessStats,
    ServiceInfo,
    ShortenRequest,
    ShortenResponse,
    URLAnalytics,
    URLCounts,
)
from snip.ratelimit import SlidingWindowRateLimiter
from snip.repository import countURLRecords, getURLStats
from snip.services import (
    ShortenerError,
    checkRateLimit,
    createShortURL,
    deleteShortURL,
    getAnalytics,
    resolveShortCode,
)

logger = logging.getLogger(__name__)
router = APIRouter()

_STARTED_AT = time.monotonic()

Limiter = Annotated[Optional[SlidingWindowRateLimiter], Depends(get_rate_limiter)]


def _errorResponse(exc: Exception) -> JSONResponse:
    if isinstance(exc, ShortenerError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )
    logger.error(f"Unhandled error: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "detail": str(exc)},
    )


async def _checkClientRateLimit(
    request: Request, limiter: Optional[SlidingWindowRateLimiter]
):
    if limiter is None:
        return
    client_ip = request.client.host if request.client else "unknown"
    await checkRateLimit(limiter, client_ip)


def _processStats() -> ProcessStats:
    # ru_maxrss is reported in kilobytes on Linux
    max_rss_kb = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    return ProcessStats(
        uptime_seconds=int(time.monotonic() - _STARTED_AT),
        max_rss_mb=round(max_rss_kb / 1024, 2),
        pid=os.getpid(),
    )


def _databaseStats(pool: Pool) -> DatabaseStats:
    pool_size = pool.get_size()
    idle = pool.get_idle_size()
    return DatabaseStats(
        status="connected",
        pool_size=pool_size,
        idle_connections=idle,
        active_connections=pool_size - idle,
    )


# Routes
@router.get("/", response_model=ServiceInfo)
async def index(settings: Annotated[Settings, Depends(get_settings)]):
    return ServiceInfo(
        name=APP_NAME,
        version=APP_VERSION,
        endpoints={
            "shorten": "POST /api/shorten",
            "redirect": "GET /:shortCode",
            "analytics": "GET /api/analytics/:shortCode",
            "delete": "DELETE /api/urls/:shortCode",
            "health": "GET /health",
            "metrics": "GET /api/metrics",
        },
        features=settings.features(),
    )


@router.get("/health", response_model=HealthStatus)
async def health_check(
    conn: Annotated[Connection, Depends(get_db_conn)],
    redis: Annotated[Optional[Redis], Depends(get_redis)],
    settings: Annotated[Settings, Depends(get_settings)],
):
    health = "healthy"
    if settings.enable_caching and not await pingCache(redis):
        health = "degraded"

    url_count = await countURLRecords(conn)
    logger.info(f"Health Check: {health}")
    return HealthStatus(
        status=health,
        timestamp=datetime.now(timezone.utc),
        url_count=url_count,
        features=settings.features(),
    )


@router.get("/api/metrics", response_model=Metrics)
async def metrics(
    request: Request,
    conn: Annotated[Connection, Depends(get_db_conn)],
    pool: Annotated[Pool, Depends(get_db_pool)],
    limiter: Limiter,
):
    try:
        await _checkClientRateLimit(request, limiter)
        stats = await getURLStats(conn)
        return Metrics(
            urls=URLCounts(
                total=stats["total_urls"],
                created_today=stats["urls_created_today"],
                created_this_week=stats["urls_created_this_week"],
            ),
            clicks=ClickCounts(
                total=stats["total_clicks"],
                today=stats["clicks_today"],
                this_week=stats["clicks_this_week"],
            ),
            database=_databaseStats(pool),
            process=_processStats(),
            timestamp=datetime.now(timezone.utc),
        )

    except Exception as exc:
        return _errorResponse(exc)


@router.post(
    "/api/shorten",
    response_model=ShortenResponse,
    status_code=status.HTTP_201_CREATED,
)
async def shorten(
    request: Request,
    payload: ShortenRequest,
    conn: Annotated[Connection, Depends(get_db_conn)],
    settings: Annotated[Settings, Depends(get_settings)],
    limiter: Limiter,
):
    try:
        await _checkClientRateLimit(request, limiter)

        record = await createShortURL(
            conn, payload.url, settings, custom_code=payload.custom_code
        )
        return ShortenResponse(
            short_code=record.short_code,
            original_url=record.original_url,
            short_url=f"{settings.base_url}/{record.short_code}",
            created_at=record.created_at,
        )

    except Exception as exc:
        return _errorResponse(exc)


@router.get("/api/analytics/{short_code}", response_model=URLAnalytics)
async def analytics(
    request: Request,
    short_code: str,
    conn: Annotated[Connection, Depends(get_db_conn)],
    settings: Annotated[Settings, Depends(get_settings)],
    limiter: Limiter,
):
    try:
        await _checkClientRateLimit(request, limiter)

        record = await getAnalytics(conn, short_code, settings)
        return URLAnalytics(
            short_code=record.short_code,
            original_url=record.original_url,
            clicks=record.clicks,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    except Exception as exc:
        return _errorResponse(exc)


@router.delete("/api/urls/{short_code}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_url(
    request: Request,
    short_code: str,
    conn: Annotated[Connection, Depends(get_db_conn)],
    redis: Annotated[Optional[Redis], Depends(get_redis)],
    limiter: Limiter,
):
    try:
        await _checkClientRateLimit(request, limiter)

        await deleteShortURL(conn, redis, short_code)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    except Exception as exc:
        return _errorResponse(exc)


@router.get("/{short_code}")
async def redirect(
    request: Request,
    short_code: str,
    conn: Annotated[Connection, Depends(get_db_conn)],
    pool: Annotated[Pool, Depends(get_db_pool)],
    redis: Annotated[Optional[Redis], Depends(get_redis)],
    settings: Annotated[Settings, Depends(get_settings)],
    limiter: Limiter,
):
    try:
        await _checkClientRateLimit(request, limiter)

        record = await resolveShortCode(conn, redis, short_code, settings, pool=pool)
        return RedirectResponse(
            url=record.original_url, status_code=status.HTTP_301_MOVED_PERMANENTLY
        )

    except Exception as exc:
        return _errorResponse(exc)
