import logging
from logging.handlers import TimedRotatingFileHandler
from typing import cast

import asyncpg
from fastapi import FastAPI
from redis.asyncio import Redis

from snip.cache import deleteCachedPattern
from snip.config import (
    APP_NAME,
    APP_VERSION,
    DATABASE_URL,
    DB_POOL_MAX,
    DB_POOL_MIN,
    LOG_FILE,
    LOG_LEVEL,
    REDIS_URL,
    load_settings,
)
from snip.controller import router
from snip.helpers import CACHE_KEY_PREFIX
from snip.ratelimit import SlidingWindowRateLimiter
from snip.repository import createSchema
from snip.services import drainBackgroundTasks

# Logging
handlers: list[logging.Handler] = [logging.StreamHandler()]
if LOG_FILE:
    handlers.append(
        TimedRotatingFileHandler(
            filename=LOG_FILE,
            when="W0",
            interval=1,
            backupCount=4,
            encoding="utf-8",
        )
    )
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(levelname)s - %(asctime)s - %(message)s",
    handlers=handlers,
)
logger = logging.getLogger(__name__)

# Set up app
app = FastAPI(title=APP_NAME, version=APP_VERSION)
app.include_router(router)


# App lifecycle
@app.on_event("startup")
async def startup_event():
    settings = load_settings()
    app.state.settings = settings

    app.state.db_pool = await asyncpg.create_pool(
        DATABASE_URL, min_size=DB_POOL_MIN, max_size=DB_POOL_MAX
    )
    async with app.state.db_pool.acquire() as conn:
        await createSchema(conn)

    app.state.redis = None
    if settings.enable_caching and REDIS_URL:
        app.state.redis = Redis.from_url(
            cast(str, REDIS_URL), encoding="utf-8", decode_responses=True
        )
        if settings.cache_flush_on_startup:
            flushed = await deleteCachedPattern(app.state.redis, f"{CACHE_KEY_PREFIX}*")
            logger.info(f"Flushed {flushed} cached URL entries")
    elif settings.enable_caching:
        logger.warning("Caching is enabled but REDIS_URL is not set, caching disabled")

    app.state.rate_limiter = None
    if settings.enable_rate_limiting:
        app.state.rate_limiter = SlidingWindowRateLimiter(
            settings.rate_limit_window_ms,
            settings.rate_limit_max_requests,
            sweep_interval=settings.rate_limit_sweep_seconds,
        )
        app.state.rate_limiter.start()

    logger.info(
        f"Application started, postgres database initialized, "
        f"features: {settings.features()}"
    )


@app.on_event("shutdown")
async def shutdown_event():
    if app.state.rate_limiter is not None:
        await app.state.rate_limiter.stop()
    await drainBackgroundTasks()
    await app.state.db_pool.close()
    if app.state.redis is not None:
        await app.state.redis.aclose()
    logger.info("Application shut down, postgres database and redis connections closed")
