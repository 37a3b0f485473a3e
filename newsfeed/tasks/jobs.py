import asyncio

from celery.utils.log import get_task_logger

from newsfeed.core.config import get_settings
from newsfeed.core.observability import TASK_COUNT
from newsfeed.schemas.feed import Snapshot
from newsfeed.services.fetcher import UpstreamFetcher
from newsfeed.services.freshness import FreshnessController
from newsfeed.services.store import build_store
from newsfeed.tasks.celery_app import celery_app

logger = get_task_logger(__name__)


async def _refresh(trigger: str) -> Snapshot:
    # One store per run: the redis client is bound to the loop asyncio.run creates.
    settings = get_settings()
    store = build_store(settings)
    try:
        controller = FreshnessController(settings, store, UpstreamFetcher(settings))
        return await controller.refresh_now(trigger=trigger)
    finally:
        await store.close()


@celery_app.task(name="newsfeed.tasks.jobs.refresh_feed")
def refresh_feed() -> dict:
    try:
        snapshot = asyncio.run(_refresh("scheduled"))
    except Exception:  # noqa: BLE001
        logger.exception("Task failed refresh_feed")
        TASK_COUNT.labels("refresh_feed", "failure").inc()
        raise
    TASK_COUNT.labels("refresh_feed", "success").inc()
    return snapshot.meta.model_dump(mode="json", by_alias=True)
