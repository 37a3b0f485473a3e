import argparse
import asyncio
import json

from newsfeed.core.config import get_settings
from newsfeed.services.extractor import extract
from newsfeed.services.fetcher import UpstreamFetcher
from newsfeed.services.freshness import FreshnessController
from newsfeed.services.rendering import items_to_json
from newsfeed.services.store import build_store


async def preview_items() -> list[dict]:
    settings = get_settings()
    body = await UpstreamFetcher(settings).fetch(settings.list_url)
    items = extract(
        body,
        settings.list_url,
        settings.feed_source,
        article_prefix=settings.article_path_prefix,
        max_items=settings.max_items,
        summary_max_length=settings.summary_max_length,
    )
    return items_to_json(items)


async def refresh_once() -> dict:
    settings = get_settings()
    store = build_store(settings)
    try:
        controller = FreshnessController(settings, store, UpstreamFetcher(settings))
        snapshot = await controller.refresh_now(trigger="cli")
        return snapshot.meta.model_dump(mode="json", by_alias=True)
    finally:
        await store.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="Refresh the cached news feed once")
    parser.add_argument("--dry-run", action="store_true", help="Fetch and extract without writing to the store")
    args = parser.parse_args()

    if args.dry_run:
        items = asyncio.run(preview_items())
        print(json.dumps(items, indent=2))
        print(f"Extracted {len(items)} items")
        return

    meta = asyncio.run(refresh_once())
    print(f"Refresh completed: {json.dumps(meta)}")


if __name__ == "__main__":
    main()
