class FeedError(RuntimeError):
    code = "FEED_ERROR"


class UpstreamHttpError(FeedError):
    code = "UPSTREAM_HTTP_ERROR"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        if self.status_code is None:
            return True
        return self.status_code in {403, 429} or 500 <= self.status_code <= 599


class UpstreamTimeoutError(FeedError):
    code = "UPSTREAM_TIMEOUT"


class UpstreamContentTypeError(FeedError):
    code = "UPSTREAM_CONTENT_TYPE"

    def __init__(self, content_type: str, body_sample: str) -> None:
        super().__init__(f"Upstream returned non-HTML content ({content_type}): {body_sample!r}")
        self.content_type = content_type
        self.body_sample = body_sample


class EmptyExtractionError(FeedError):
    code = "EXTRACTION_EMPTY"


class StoreIOError(FeedError):
    code = "STORE_IO_ERROR"
