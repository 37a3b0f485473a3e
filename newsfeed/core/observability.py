from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "newsfeed_api_requests_total",
    "Total API requests",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "newsfeed_api_request_latency_seconds",
    "API request latency",
    ["method", "path"],
)

CACHE_DISPOSITION = Counter(
    "newsfeed_cache_disposition_total",
    "Feed responses by cache disposition",
    ["source", "disposition"],
)

REFRESH_COUNT = Counter(
    "newsfeed_refresh_total",
    "Feed refresh attempts",
    ["source", "trigger", "status"],
)

UPSTREAM_LATENCY = Histogram(
    "newsfeed_upstream_fetch_latency_seconds",
    "Upstream listing fetch latency per attempt",
    ["status"],
)

TASK_COUNT = Counter(
    "newsfeed_task_total",
    "Total task executions",
    ["task", "status"],
)
