import asyncio
import logging
from typing import Optional

from asyncpg import Connection, Pool
from redis.asyncio import Redis

from snip.cache import deleteCached, getCached, setCached
from snip.config import Settings
from snip.helpers import (
    cache_key,
    generate_code,
    is_valid_custom_code,
    is_valid_url,
    sanitize_url,
)
from snip.models import URLRecord
from snip.ratelimit import SlidingWindowRateLimiter
from snip.repository import (
    codeExists,
    deleteURLRecord,
    getURLRecord,
    incrementClicks,
    insertURLRecord,
)

logger = logging.getLogger(__name__)


class ShortenerError(Exception):
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class InvalidInput(ShortenerError):
    status_code = 400

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field} '{value}': {reason}")


class DuplicateCode(ShortenerError):
    status_code = 409

    def __init__(self, short_code: str):
        self.short_code = short_code
        super().__init__(f"Short code already exists: {short_code}")


class RecordNotFound(ShortenerError):
    status_code = 404

    def __init__(self, record_type: str, identifier: str):
        self.record_type = record_type
        self.identifier = identifier
        super().__init__(f"{record_type} not found for identifier: {identifier}")


class FeatureDisabled(ShortenerError):
    status_code = 403

    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"{feature} feature is not enabled")


class ExhaustedRetries(ShortenerError):
    status_code = 500

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Failed to generate a unique short code after {attempts} attempts"
        )


class RateLimitExceeded(ShortenerError):
    status_code = 429

    def __init__(self, client_ip: str, max_requests: int, window_ms: int):
        self.client_ip = client_ip
        self.max_requests = max_requests
        super().__init__(
            f"Rate limit exceeded for IP {client_ip}. "
            f"Limit is {max_requests} requests per {window_ms / 1000:g} seconds."
        )


# Detached analytics increments; referenced here until they finish.
_background_tasks: set[asyncio.Task] = set()


async def checkRateLimit(limiter: SlidingWindowRateLimiter, client_ip: str):
    if not await limiter.admit(client_ip):
        raise RateLimitExceeded(
            client_ip, limiter.max_requests, int(limiter.window * 1000)
        )


async def _freeCandidate(
    conn: Connection, length: int, attempt: int, max_attempts: int
) -> Optional[str]:
    candidate = generate_code(length)
    if not await codeExists(conn, candidate):
        return candidate
    logger.warning(
        f"Short code collision on {candidate} (attempt {attempt}/{max_attempts})"
    )
    return None


async def allocateShortCode(
    conn: Connection, length: int, max_attempts: int = 5
) -> str:
    """Find a generated code that is not in the store yet.

    The existence check only avoids most collisions. Two allocators can still
    pick the same fresh code; the unique constraint on insert settles that.
    """

    for attempt in range(1, max_attempts + 1):
        candidate = await _freeCandidate(conn, length, attempt, max_attempts)
        if candidate is not None:
            return candidate

    logger.error(f"Failed to allocate a short code after {max_attempts} attempts")
    raise ExhaustedRetries(max_attempts)


async def _insertCustomCode(
    conn: Connection, short_code: str, original_url: str, settings: Settings
) -> URLRecord:
    if not settings.enable_custom_codes:
        raise FeatureDisabled("Custom short codes")
    if not is_valid_custom_code(short_code):
        raise InvalidInput(
            "custom code",
            short_code,
            "must be 3-20 alphanumeric characters, hyphens, or underscores",
        )

    if await codeExists(conn, short_code):
        raise DuplicateCode(short_code)

    record = await insertURLRecord(conn, short_code, original_url)
    if record is None:
        # Lost the race to a concurrent insert of the same code.
        raise DuplicateCode(short_code)
    return record


async def _insertGeneratedCode(
    conn: Connection, original_url: str, settings: Settings
) -> URLRecord:
    # Existence collisions and insert conflicts share one attempt budget.
    attempts = settings.max_allocation_attempts
    for attempt in range(1, attempts + 1):
        short_code = await _freeCandidate(
            conn, settings.short_code_length, attempt, attempts
        )
        if short_code is None:
            continue
        record = await insertURLRecord(conn, short_code, original_url)
        if record is not None:
            return record
        logger.warning(
            f"Insert conflict on freshly allocated code {short_code} "
            f"(attempt {attempt}/{attempts})"
        )

    logger.error(f"Failed to allocate a short code after {attempts} attempts")
    raise ExhaustedRetries(attempts)


async def createShortURL(
    conn: Connection,
    original_url: str,
    settings: Settings,
    custom_code: Optional[str] = None,
) -> URLRecord:
    original_url = sanitize_url(original_url or "")
    if not is_valid_url(original_url):
        logger.warning(f"Invalid URL provided: {original_url}")
        raise InvalidInput("URL", original_url, "must be an absolute http(s) URL")

    if custom_code:
        record = await _insertCustomCode(conn, custom_code, original_url, settings)
    else:
        record = await _insertGeneratedCode(conn, original_url, settings)

    logger.info(f"Short URL created: {record.short_code} -> {record.original_url}")
    return record


async def _incrementClicksDetached(pool: Pool, short_code: str) -> None:
    try:
        async with pool.acquire() as conn:
            await incrementClicks(conn, short_code)
    except Exception as exc:
        logger.error(f"Background click increment failed for {short_code}: {exc}")


def _scheduleClickIncrement(pool: Pool, short_code: str) -> None:
    task = asyncio.create_task(_incrementClicksDetached(pool, short_code))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)


async def drainBackgroundTasks() -> None:
    if _background_tasks:
        await asyncio.gather(*list(_background_tasks), return_exceptions=True)


async def resolveShortCode(
    conn: Connection,
    redis: Optional[Redis],
    short_code: str,
    settings: Settings,
    pool: Optional[Pool] = None,
) -> URLRecord:
    """Cache-aside lookup of a short code.

    Cache entries are only ever written with a value just read from the store.
    On a hit the click is counted by a detached task that the caller never
    awaits; on a miss it is counted synchronously by the store read itself.
    """

    use_cache = settings.enable_caching and redis is not None
    key = cache_key(short_code)

    if use_cache:
        cached = await getCached(redis, key)
        if cached is not None:
            if settings.enable_analytics and pool is not None:
                _scheduleClickIncrement(pool, short_code)
            logger.info(f"Cache hit - Redirecting: {short_code} -> {cached.original_url}")
            return cached

    if settings.enable_analytics:
        record = await incrementClicks(conn, short_code)
    else:
        record = await getURLRecord(conn, short_code)

    if record is None:
        logger.info(f"Cannot find matching URL for short code: {short_code}")
        raise RecordNotFound("Original URL", short_code)

    if use_cache:
        await setCached(redis, key, record, settings.cache_ttl_seconds)
        # A delete may have landed between the store read and the cache write.
        if not await codeExists(conn, short_code):
            await deleteCached(redis, key)
            logger.info(f"Short code deleted during lookup: {short_code}")
            raise RecordNotFound("Original URL", short_code)
    logger.info(f"URL found - Redirecting: {short_code} -> {record.original_url}")

    return record


async def getAnalytics(
    conn: Connection, short_code: str, settings: Settings
) -> URLRecord:
    if not settings.enable_analytics:
        raise FeatureDisabled("Analytics")

    record = await getURLRecord(conn, short_code)
    if record is None:
        raise RecordNotFound("Short URL", short_code)
    return record


async def deleteShortURL(
    conn: Connection, redis: Optional[Redis], short_code: str
) -> None:
    deleted = await deleteURLRecord(conn, short_code)
    # Invalidate even when nothing was deleted: a stale entry may still linger.
    await deleteCached(redis, cache_key(short_code))

    if not deleted:
        logger.info(f"Short code not found for deletion: {short_code}")
        raise RecordNotFound("Short URL", short_code)
    logger.info(f"Short URL deleted: {short_code}")
