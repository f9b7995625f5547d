from typing import Any, Mapping, Optional

from asyncpg import Connection

from snip.models import URLRecord

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS urls (
    id SERIAL PRIMARY KEY,
    short_code VARCHAR(20) NOT NULL UNIQUE,
    original_url TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    clicks INTEGER NOT NULL DEFAULT 0 CHECK (clicks >= 0)
);
CREATE INDEX IF NOT EXISTS idx_urls_created_at ON urls (created_at);
"""

RECORD_COLUMNS = "short_code, original_url, clicks, created_at, updated_at"


def _toURLRecord(row: Mapping[str, Any]) -> URLRecord:
    return URLRecord(
        short_code=row["short_code"],
        original_url=row["original_url"],
        clicks=row["clicks"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


async def createSchema(conn: Connection) -> None:
    await conn.execute(SCHEMA_SQL)


async def insertURLRecord(
    conn: Connection, short_code: str, original_url: str
) -> Optional[URLRecord]:
    """Insert a new mapping; returns None when the short code is already taken."""

    result = await conn.fetchrow(
        f"""
        INSERT INTO urls (short_code, original_url)
        VALUES ($1, $2)
        ON CONFLICT (short_code) DO NOTHING
        RETURNING {RECORD_COLUMNS}
        """,
        short_code,
        original_url,
    )
    if result:
        return _toURLRecord(result)
    return None


async def getURLRecord(conn: Connection, short_code: str) -> Optional[URLRecord]:
    result = await conn.fetchrow(
        f"""
        SELECT {RECORD_COLUMNS} FROM urls WHERE short_code = $1
        """,
        short_code,
    )
    if result:
        return _toURLRecord(result)
    return None


async def codeExists(conn: Connection, short_code: str) -> bool:
    return bool(
        await conn.fetchval(
            "SELECT EXISTS (SELECT 1 FROM urls WHERE short_code = $1)", short_code
        )
    )


async def incrementClicks(conn: Connection, short_code: str) -> Optional[URLRecord]:
    # Single statement: concurrent redirects on the same code must not lose counts.
    result = await conn.fetchrow(
        f"""
        UPDATE urls
        SET clicks = clicks + 1,
            updated_at = CURRENT_TIMESTAMP
        WHERE short_code = $1
        RETURNING {RECORD_COLUMNS}
        """,
        short_code,
    )
    if result:
        return _toURLRecord(result)
    return None


async def deleteURLRecord(conn: Connection, short_code: str) -> bool:
    status = await conn.execute("DELETE FROM urls WHERE short_code = $1", short_code)
    # asyncpg returns the command tag, e.g. "DELETE 1"
    return status.split()[-1] != "0"


async def countURLRecords(conn: Connection) -> int:
    return await conn.fetchval("SELECT COUNT(*) FROM urls") or 0


async def getURLStats(conn: Connection) -> dict[str, int]:
    result = await conn.fetchrow(
        """
        SELECT
            COUNT(*) AS total_urls,
            COALESCE(SUM(clicks), 0) AS total_clicks,
            COUNT(*) FILTER (WHERE created_at >= CURRENT_DATE) AS urls_created_today,
            COUNT(*) FILTER (
                WHERE created_at >= CURRENT_DATE - INTERVAL '7 days'
            ) AS urls_created_this_week,
            COALESCE(SUM(clicks) FILTER (WHERE updated_at >= CURRENT_DATE), 0)
                AS clicks_today,
            COALESCE(
                SUM(clicks) FILTER (
                    WHERE updated_at >= CURRENT_DATE - INTERVAL '7 days'
                ),
                0
            ) AS clicks_this_week
        FROM urls
        """
    )
    return {key: int(value or 0) for key, value in dict(result or {}).items()}
