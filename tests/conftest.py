import os
from datetime import UTC, datetime, timedelta

import httpx
import pytest
from fastapi.testclient import TestClient

LISTING_HTML = """
<html>
  <body>
    <nav><a href="/news/nav-item">Nav item</a></nav>
    <main>
      <h1><a href="/news">All news</a></h1>
      <ul>
        <li>
          <a href="/news/alpha">Alpha</a>
          <time datetime="2024-01-05">5 January 2024</time>
        </li>
        <li>
          <a href="/news/beta">Beta</a>
          <p>Beta summary</p>
        </li>
      </ul>
    </main>
    <footer><a href="/news/footer-link">Footer link</a></footer>
  </body>
</html>
"""


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeUpstream:
    """Queue of canned upstream responses served through httpx.MockTransport."""

    def __init__(self) -> None:
        self.responses: list = []
        self.default: httpx.Response | Exception | None = None
        self.requests: list[httpx.Request] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if self.responses else self.default
        if response is None:
            raise AssertionError("unexpected upstream request")
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def html_response(html: str = LISTING_HTML, status: int = 200) -> httpx.Response:
    return httpx.Response(status, text=html, headers={"content-type": "text/html; charset=utf-8"})


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    os.environ["ENV"] = "test"
    os.environ["API_AUTH_ENABLED"] = "false"
    os.environ["STORE_BACKEND"] = "memory"
    os.environ["FEED_SOURCE"] = "gov-source"
    os.environ["LIST_URL"] = "https://example.org/news"
    os.environ["FEED_REFERER"] = "https://example.org/"
    os.environ["FETCH_BACKOFF_BASE_SECONDS"] = "0"
    os.environ["REFRESH_JITTER_SECONDS"] = "0"
    os.environ["CELERY_EAGER_MODE"] = "true"

    from newsfeed.core.config import get_settings
    from newsfeed.core.runtime import reset_runtime_for_tests

    get_settings.cache_clear()
    reset_runtime_for_tests()

    yield


@pytest.fixture
def settings(setup_test_env):
    from newsfeed.core.config import get_settings

    return get_settings()


@pytest.fixture
def listing_html():
    return LISTING_HTML


@pytest.fixture
def make_response():
    return html_response


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 10, 9, 0, tzinfo=UTC))


@pytest.fixture
def upstream():
    fake = FakeUpstream()
    fake.default = html_response()
    return fake


@pytest.fixture
def make_controller(settings, clock, upstream):
    from newsfeed.services.fetcher import UpstreamFetcher
    from newsfeed.services.freshness import FreshnessController
    from newsfeed.services.store import MemoryStore

    def factory(store=None, **overrides):
        config = settings.model_copy(update=overrides) if overrides else settings
        return FreshnessController(
            config,
            store if store is not None else MemoryStore(),
            UpstreamFetcher(config, transport=upstream.transport),
            clock=clock,
        )

    return factory


@pytest.fixture
def controller(make_controller):
    return make_controller()


@pytest.fixture
def client(controller):
    from newsfeed.core.runtime import get_controller
    from newsfeed.main import app

    app.dependency_overrides[get_controller] = lambda: controller
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
