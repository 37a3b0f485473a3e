from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from starlette.responses import JSONResponse, PlainTextResponse, Response

from newsfeed.core.auth import require_operator
from newsfeed.core.config import Settings, get_settings
from newsfeed.core.errors import FeedError, StoreIOError
from newsfeed.core.observability import CACHE_DISPOSITION
from newsfeed.core.responses import error_response, feed_headers
from newsfeed.core.runtime import get_controller
from newsfeed.schemas.feed import CacheDisposition
from newsfeed.services.freshness import FreshnessController, ServeResult, describe_error
from newsfeed.services.rendering import items_to_json, render_error_rss

RSS_MEDIA_TYPE = "application/rss+xml; charset=utf-8"

router = APIRouter(tags=["feeds"])


def _require_source(source: str, settings: Settings) -> None:
    if source != settings.feed_source:
        raise HTTPException(status_code=404, detail="Feed not found")


def _failure_status(exc: FeedError) -> int:
    return 503 if isinstance(exc, StoreIOError) else 502


def _error_headers() -> dict[str, str]:
    return {"cache-control": "no-store", "x-cache": CacheDisposition.error.value}


async def _serve(controller: FreshnessController, background_tasks: BackgroundTasks) -> ServeResult:
    result = await controller.serve()
    if result.refresh_scheduled:
        background_tasks.add_task(controller.background_refresh)
    return result


@router.get("/", response_class=PlainTextResponse)
def liveness() -> str:
    return "Worker is live"


@router.get("/feeds/{source}/news.json")
async def news_json(
    source: str,
    request: Request,
    background_tasks: BackgroundTasks,
    controller: FreshnessController = Depends(get_controller),
    settings: Settings = Depends(get_settings),
):
    _require_source(source, settings)
    try:
        result = await _serve(controller, background_tasks)
    except FeedError as exc:
        CACHE_DISPOSITION.labels(source, CacheDisposition.error.value).inc()
        payload, status = error_response(
            code=exc.code,
            message=describe_error(exc),
            trace_id=getattr(request.state, "trace_id", "missing-trace-id"),
            status=_failure_status(exc),
        )
        return JSONResponse(payload, status_code=status, headers=_error_headers())

    return JSONResponse(
        items_to_json(result.snapshot.items),
        headers=feed_headers(settings.client_max_age_seconds, result.disposition.value),
    )


@router.get("/feeds/{source}/news.rss")
@router.get("/feeds/{source}/news.xml")
@router.get("/feeds/{source}/news")
async def news_rss(
    source: str,
    background_tasks: BackgroundTasks,
    controller: FreshnessController = Depends(get_controller),
    settings: Settings = Depends(get_settings),
):
    _require_source(source, settings)
    try:
        result = await _serve(controller, background_tasks)
    except FeedError as exc:
        CACHE_DISPOSITION.labels(source, CacheDisposition.error.value).inc()
        return Response(
            render_error_rss(describe_error(exc), settings.list_url),
            status_code=_failure_status(exc),
            media_type=RSS_MEDIA_TYPE,
            headers=_error_headers(),
        )

    return Response(
        result.snapshot.rss,
        media_type=RSS_MEDIA_TYPE,
        headers=feed_headers(settings.client_max_age_seconds, result.disposition.value),
    )


@router.get("/feeds/{source}/news.meta.json")
async def news_meta(
    source: str,
    controller: FreshnessController = Depends(get_controller),
    settings: Settings = Depends(get_settings),
):
    _require_source(source, settings)
    status = await controller.inspect()
    return JSONResponse(status.model_dump(mode="json", by_alias=True), headers={"cache-control": "no-store"})


@router.post("/feeds/{source}/refresh", dependencies=[Depends(require_operator)])
async def refresh_feed(
    source: str,
    controller: FreshnessController = Depends(get_controller),
    settings: Settings = Depends(get_settings),
):
    _require_source(source, settings)
    snapshot = await controller.refresh_now(trigger="manual")
    return snapshot.meta.model_dump(mode="json", by_alias=True)
