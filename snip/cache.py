import logging
from typing import Optional

from redis.asyncio import Redis

from snip.models import URLRecord

logger = logging.getLogger(__name__)


# Every helper accepts a missing client and turns cache errors into a miss or a
# no-op.


async def getCached(redis: Optional[Redis], key: str) -> Optional[URLRecord]:
    if redis is None:
        return None
    try:
        raw = await redis.get(key)
        if not raw:
            return None
        return URLRecord.model_validate_json(raw)
    except Exception as exc:
        logger.error(f"Cache get error for key {key}: {exc}")
        return None


async def setCached(
    redis: Optional[Redis], key: str, record: URLRecord, ttl: int
) -> None:
    if redis is None:
        return
    try:
        await redis.setex(key, ttl, record.model_dump_json())
    except Exception as exc:
        logger.error(f"Cache set error for key {key}: {exc}")


async def deleteCached(redis: Optional[Redis], key: str) -> None:
    if redis is None:
        return
    try:
        await redis.delete(key)
    except Exception as exc:
        logger.error(f"Cache delete error for key {key}: {exc}")


async def deleteCachedPattern(redis: Optional[Redis], pattern: str) -> int:
    """Delete every key matching a glob pattern, e.g. "url:*"."""

    if redis is None:
        return 0
    deleted = 0
    try:
        batch = []
        async for key in redis.scan_iter(match=pattern, count=500):
            batch.append(key)
            if len(batch) >= 500:
                deleted += await redis.delete(*batch)
                batch = []
        if batch:
            deleted += await redis.delete(*batch)
    except Exception as exc:
        logger.error(f"Cache pattern delete error for pattern {pattern}: {exc}")
    return deleted


async def pingCache(redis: Optional[Redis]) -> bool:
    if redis is None:
        return False
    try:
        return bool(await redis.ping())
    except Exception as exc:
        logger.error(f"Cache ping failed: {exc}")
        return False
