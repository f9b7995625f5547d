from typing import Annotated, AsyncGenerator, Optional

from asyncpg import Connection, Pool
from fastapi import Depends, Request
from redis.asyncio import Redis

from snip.config import Settings
from snip.ratelimit import SlidingWindowRateLimiter


async def get_db_pool(request: Request) -> AsyncGenerator[Pool, None]:
    yield request.app.state.db_pool


async def get_db_conn(
    pool: Annotated[Pool, Depends(get_db_pool)],
) -> AsyncGenerator[Connection, None]:
    async with pool.acquire() as conn:
        yield conn


async def get_redis(request: Request) -> AsyncGenerator[Optional[Redis], None]:
    yield getattr(request.app.state, "redis", None)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_rate_limiter(request: Request) -> Optional[SlidingWindowRateLimiter]:
    return getattr(request.app.state, "rate_limiter", None)
