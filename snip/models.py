from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class URLRecord(BaseModel):
    short_code: str
    original_url: str
    clicks: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ShortenRequest(CamelModel):
    url: str
    custom_code: Optional[str] = None


class ShortenResponse(CamelModel):
    short_code: str
    original_url: str
    short_url: str
    created_at: datetime


class URLAnalytics(CamelModel):
    short_code: str
    original_url: str
    clicks: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class ServiceInfo(CamelModel):
    name: str
    version: str
    endpoints: dict[str, str]
    features: dict[str, bool]


class HealthStatus(CamelModel):
    status: str
    timestamp: datetime
    url_count: int
    features: dict[str, bool]


class URLCounts(CamelModel):
    total: int
    created_today: int
    created_this_week: int


class ClickCounts(CamelModel):
    total: int
    today: int
    this_week: int


class DatabaseStats(CamelModel):
    status: str
    pool_size: int
    idle_connections: int
    active_connections: int


class ProcessStats(CamelModel):
    uptime_seconds: int
    max_rss_mb: float
    pid: int


class Metrics(CamelModel):
    urls: URLCounts
    clicks: ClickCounts
    database: DatabaseStats
    process: ProcessStats
    timestamp: datetime
