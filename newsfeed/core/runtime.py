from newsfeed.core.config import get_settings
from newsfeed.services.fetcher import UpstreamFetcher
from newsfeed.services.freshness import FreshnessController
from newsfeed.services.store import MemoryStore, RedisStore, build_store

_store = None
_controller = None


def get_store() -> RedisStore | MemoryStore:
    global _store
    if _store is None:
        _store = build_store(get_settings())
    return _store


def get_controller() -> FreshnessController:
    global _controller
    if _controller is None:
        settings = get_settings()
        _controller = FreshnessController(settings, get_store(), UpstreamFetcher(settings))
    return _controller


async def close_store() -> None:
    global _store, _controller
    if _store is not None:
        await _store.close()
    _store = None
    _controller = None


def reset_runtime_for_tests() -> None:
    global _store, _controller
    _store = None
    _controller = None
