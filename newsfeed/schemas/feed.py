from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class FreshnessState(str, Enum):
    empty = "empty"
    fresh = "fresh"
    stale = "stale"


class CacheDisposition(str, Enum):
    fresh = "fresh"
    stale_refreshing = "stale-refreshing"
    refreshed = "refreshed"
    error = "error"


class FeedItem(BaseModel):
    title: str = Field(min_length=1)
    link: str
    published: str | None = None
    summary: str | None = None
    guid: str
    content_hash: str
    source: str

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class FeedMeta(BaseModel):
    source: str
    list_url: str
    last_success_time: datetime | None = None
    last_attempt_time: datetime | None = None
    last_error: str | None = None
    item_count: int = 0

    model_config = {"alias_generator": to_camel, "populate_by_name": True}

    def age_at(self, now: datetime) -> float | None:
        if self.last_success_time is None:
            return None
        return (now - self.last_success_time).total_seconds()


class Snapshot(BaseModel):
    items: list[FeedItem] = Field(default_factory=list)
    rss: str
    meta: FeedMeta


class FeedMetaOut(FeedMeta):
    state: FreshnessState
    age_seconds: float | None = None
    freshness_interval_seconds: int
