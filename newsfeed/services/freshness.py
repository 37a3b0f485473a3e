"""Stale-while-revalidate controller for the cached feed snapshot."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from pydantic import TypeAdapter, ValidationError

from newsfeed.core.config import Settings
from newsfeed.core.errors import EmptyExtractionError
from newsfeed.core.observability import CACHE_DISPOSITION, REFRESH_COUNT
from newsfeed.schemas.feed import CacheDisposition, FeedItem, FeedMeta, FeedMetaOut, FreshnessState, Snapshot
from newsfeed.services.extractor import extract
from newsfeed.services.rendering import render_rss
from newsfeed.services.store import FeedKeys, Store

logger = logging.getLogger(__name__)

ITEMS_ADAPTER = TypeAdapter(list[FeedItem])


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...


def now_utc() -> datetime:
    return datetime.now(UTC)


def describe_error(exc: BaseException) -> str:
    message = str(exc)
    return message if message else exc.__class__.__name__


@dataclass
class ServeResult:
    disposition: CacheDisposition
    snapshot: Snapshot
    refresh_scheduled: bool = False


class FreshnessController:
    def __init__(
        self,
        settings: Settings,
        store: Store,
        fetcher: Fetcher,
        extractor: Callable[..., list[FeedItem]] = extract,
        clock: Callable[[], datetime] = now_utc,
        jitter: Callable[[float, float], float] = random.uniform,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.store = store
        self.fetcher = fetcher
        self.extractor = extractor
        self.clock = clock
        self.jitter = jitter
        self.sleep = sleep
        self.keys = FeedKeys(settings.feed_source)

    @property
    def source(self) -> str:
        return self.settings.feed_source

    def default_meta(self) -> FeedMeta:
        return FeedMeta(source=self.source, list_url=self.settings.list_url)

    def freshness_state(self, meta: FeedMeta, has_snapshot: bool, now: datetime) -> FreshnessState:
        if not has_snapshot:
            return FreshnessState.empty
        age = meta.age_at(now)
        if age is None or age > self.settings.freshness_interval_seconds:
            return FreshnessState.stale
        return FreshnessState.fresh

    async def read_meta(self) -> FeedMeta:
        raw = await self.store.get(self.keys.meta)
        if raw is None:
            return self.default_meta()
        try:
            return FeedMeta.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable metadata for %s", self.source)
            return self.default_meta()

    async def read_snapshot(self) -> Snapshot | None:
        items_raw = await self.store.get(self.keys.items)
        rss_raw = await self.store.get(self.keys.rss)
        meta = await self.read_meta()
        if items_raw is None or rss_raw is None:
            return None
        try:
            items = ITEMS_ADAPTER.validate_json(items_raw)
        except ValidationError:
            logger.warning("Discarding unreadable item snapshot for %s", self.source)
            return None
        return Snapshot(items=items, rss=rss_raw.decode("utf-8"), meta=meta)

    async def serve(self, now: datetime | None = None) -> ServeResult:
        """Answer a feed request from the store, refreshing only when nothing is stored.

        A stale snapshot is returned as-is with ``refresh_scheduled`` set; the
        caller runs :meth:`background_refresh` after responding.
        """
        now = now or self.clock()
        snapshot = await self.read_snapshot()

        if snapshot is None:
            snapshot = await self.refresh_now(trigger="on_demand")
            result = ServeResult(CacheDisposition.refreshed, snapshot)
        elif self.freshness_state(snapshot.meta, True, now) is FreshnessState.fresh:
            result = ServeResult(CacheDisposition.fresh, snapshot)
        else:
            result = ServeResult(CacheDisposition.stale_refreshing, snapshot, refresh_scheduled=True)

        CACHE_DISPOSITION.labels(self.source, result.disposition.value).inc()
        return result

    async def inspect(self, now: datetime | None = None) -> FeedMetaOut:
        """Current metadata with computed age and state; never triggers a refresh."""
        now = now or self.clock()
        snapshot = await self.read_snapshot()
        meta = snapshot.meta if snapshot is not None else await self.read_meta()
        return FeedMetaOut(
            **meta.model_dump(),
            state=self.freshness_state(meta, snapshot is not None, now),
            age_seconds=meta.age_at(now),
            freshness_interval_seconds=self.settings.freshness_interval_seconds,
        )

    async def background_refresh(self) -> None:
        delay = self.jitter(0, self.settings.refresh_jitter_seconds)
        await self.sleep(delay)
        try:
            await self.refresh_now(trigger="background")
        except Exception:  # noqa: BLE001
            logger.exception("Background refresh failed for %s; keeping previous snapshot", self.source)

    async def refresh_now(self, trigger: str = "scheduled") -> Snapshot:
        """Fetch, extract and store a new snapshot; failures are recorded in metadata and re-raised."""
        attempted_at = self.clock()
        previous = await self.read_meta()

        try:
            body = await self.fetcher.fetch(self.settings.list_url)
            items = self.extractor(
                body,
                self.settings.list_url,
                self.source,
                article_prefix=self.settings.article_path_prefix,
                max_items=self.settings.max_items,
                summary_max_length=self.settings.summary_max_length,
            )
            if not items and not self.settings.accept_empty_extraction:
                raise EmptyExtractionError("extraction returned no items")

            succeeded_at = self.clock()
            meta = previous.model_copy(
                update={
                    "last_attempt_time": attempted_at,
                    "last_success_time": succeeded_at,
                    "last_error": None,
                    "item_count": len(items),
                }
            )
            rss = render_rss(self.settings.feed_title, self.settings.list_url, items, built_at=succeeded_at)
            await self.store.put_many(
                {
                    self.keys.items: ITEMS_ADAPTER.dump_json(items, by_alias=True),
                    self.keys.rss: rss.encode("utf-8"),
                    self.keys.meta: meta.model_dump_json(by_alias=True).encode("utf-8"),
                },
                self.settings.snapshot_ttl_seconds,
            )
        except Exception as exc:  # noqa: BLE001
            REFRESH_COUNT.labels(self.source, trigger, "failure").inc()
            await self._record_failure(attempted_at, exc)
            raise

        REFRESH_COUNT.labels(self.source, trigger, "success").inc()
        logger.info("Refreshed %s (%s): %d items", self.source, trigger, len(items))
        return Snapshot(items=items, rss=rss, meta=meta)

    async def _record_failure(self, attempted_at: datetime, exc: Exception) -> None:
        error = describe_error(exc)
        logger.warning("Refresh failed for %s: %s", self.source, error)
        try:
            # Re-read so a concurrent successful refresh keeps its success fields.
            current = await self.read_meta()
            meta = current.model_copy(update={"last_attempt_time": attempted_at, "last_error": error})
            await self.store.put(
                self.keys.meta,
                meta.model_dump_json(by_alias=True).encode("utf-8"),
                self.settings.snapshot_ttl_seconds,
            )
        except Exception:  # noqa: BLE001
            logger.exception("Could not record refresh failure for %s", self.source)
