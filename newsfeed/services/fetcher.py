from __future__ import annotations

import asyncio
import logging
from time import perf_counter

import httpx
from tenacity import AsyncRetrying, RetryCallState, before_sleep_log, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base

from newsfeed.core.config import Settings
from newsfeed.core.errors import UpstreamContentTypeError, UpstreamHttpError, UpstreamTimeoutError
from newsfeed.core.observability import UPSTREAM_LATENCY

logger = logging.getLogger(__name__)

HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml")
BODY_SAMPLE_LENGTH = 200


class wait_quadratic(wait_base):
    """Wait ``base * attempt**2`` seconds after the given attempt."""

    def __init__(self, base: float) -> None:
        self.base = base

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.base * retry_state.attempt_number**2


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, UpstreamTimeoutError):
        return True
    if isinstance(exc, UpstreamHttpError):
        return exc.retryable
    return False


def _is_html(content_type: str) -> bool:
    if not content_type:
        return True
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type in HTML_CONTENT_TYPES


class UpstreamFetcher:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._transport = transport

    def request_headers(self) -> dict[str, str]:
        headers = {
            "user-agent": self.settings.user_agent,
            "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "accept-language": self.settings.accept_language,
            "upgrade-insecure-requests": "1",
        }
        if self.settings.feed_referer:
            headers["referer"] = self.settings.feed_referer
        return headers

    async def fetch(self, url: str) -> bytes:
        async with httpx.AsyncClient(
            headers=self.request_headers(),
            timeout=self.settings.fetch_timeout_seconds,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.settings.fetch_max_attempts),
                wait=wait_quadratic(self.settings.fetch_backoff_base_seconds),
                retry=retry_if_exception(_is_retryable),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    body = await self._get(client, url)
        return body

    async def _get(self, client: httpx.AsyncClient, url: str) -> bytes:
        timeout = self.settings.fetch_timeout_seconds
        started = perf_counter()
        try:
            response = await asyncio.wait_for(client.get(url), timeout=timeout)
        except (TimeoutError, httpx.TimeoutException) as exc:
            UPSTREAM_LATENCY.labels("timeout").observe(perf_counter() - started)
            raise UpstreamTimeoutError(f"Upstream fetch timeout after {timeout:g}s: {url}") from exc
        except httpx.TransportError as exc:
            UPSTREAM_LATENCY.labels("transport_error").observe(perf_counter() - started)
            raise UpstreamHttpError(f"Upstream fetch failed: {exc.__class__.__name__}: {exc}") from exc
        UPSTREAM_LATENCY.labels(str(response.status_code)).observe(perf_counter() - started)

        if not response.is_success:
            raise UpstreamHttpError(
                f"Upstream fetch failed: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        content_type = response.headers.get("content-type", "")
        if not _is_html(content_type):
            raise UpstreamContentTypeError(content_type, response.text[:BODY_SAMPLE_LENGTH])

        logger.info("Fetched %s (%s, %d bytes)", url, response.status_code, len(response.content))
        return response.content
