import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fnmatch import fnmatch

import pytest

from snip.config import Settings
from snip.models import URLRecord

CREATED_AT = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeStore:
    """In-memory stand-in for the repository functions used by the services.

    Inserts honour the unique short code constraint and increments are atomic,
    like the single-statement SQL they replace.
    """

    def __init__(self):
        self.records: dict[str, URLRecord] = {}
        self.calls: list[str] = []

    async def insert(self, conn, short_code, original_url):
        self.calls.append("insert")
        await asyncio.sleep(0)
        if short_code in self.records:
            return None
        record = URLRecord(
            short_code=short_code,
            original_url=original_url,
            clicks=0,
            created_at=CREATED_AT,
            updated_at=CREATED_AT,
        )
        self.records[short_code] = record
        return record.model_copy()

    async def get(self, conn, short_code):
        self.calls.append("get")
        await asyncio.sleep(0)
        record = self.records.get(short_code)
        return record.model_copy() if record else None

    async def exists(self, conn, short_code):
        self.calls.append("exists")
        await asyncio.sleep(0)
        return short_code in self.records

    async def increment(self, conn, short_code):
        self.calls.append("increment")
        await asyncio.sleep(0)
        record = self.records.get(short_code)
        if record is None:
            return None
        record.clicks += 1
        record.updated_at = datetime.now(timezone.utc)
        return record.model_copy()

    async def delete(self, conn, short_code):
        self.calls.append("delete")
        await asyncio.sleep(0)
        return self.records.pop(short_code, None) is not None


class FakeRedis:
    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.fail = False

    def _check(self):
        if self.fail:
            raise ConnectionError("redis is down")

    async def get(self, key):
        self._check()
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self._check()
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys):
        self._check()
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    async def scan_iter(self, match=None, count=None):
        self._check()
        for key in list(self.data):
            if match is None or fnmatch(key, match):
                yield key

    async def ping(self):
        self._check()
        return True


class FakePool:
    def __init__(self, fail: bool = False):
        self.fail = fail

    @asynccontextmanager
    async def _connection(self):
        if self.fail:
            raise ConnectionError("pool exhausted")
        yield object()

    def acquire(self):
        return self._connection()


@pytest.fixture
def store(monkeypatch):
    fake = FakeStore()
    monkeypatch.setattr("snip.services.insertURLRecord", fake.insert)
    monkeypatch.setattr("snip.services.getURLRecord", fake.get)
    monkeypatch.setattr("snip.services.codeExists", fake.exists)
    monkeypatch.setattr("snip.services.incrementClicks", fake.increment)
    monkeypatch.setattr("snip.services.deleteURLRecord", fake.delete)
    return fake


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def fake_pool():
    return FakePool()


@pytest.fixture
def make_settings():
    def _make(**overrides):
        return Settings(**overrides)

    return _make


@pytest.fixture
def failing_pool():
    return FakePool(fail=True)
