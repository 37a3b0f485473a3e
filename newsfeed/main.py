import logging
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import JSONResponse, Response

from newsfeed.api.routes import router as feed_router
from newsfeed.core.config import get_settings
from newsfeed.core.errors import FeedError, StoreIOError
from newsfeed.core.observability import REQUEST_COUNT, REQUEST_LATENCY
from newsfeed.core.responses import error_response
from newsfeed.core.runtime import close_store

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(level=settings.log_level)
    yield
    await close_store()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.include_router(feed_router)
FastAPIInstrumentor.instrument_app(app)


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "missing-trace-id")


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    trace_id = request.headers.get("X-Trace-Id", str(uuid4()))
    request.state.trace_id = trace_id

    start = perf_counter()
    response = await call_next(request)
    elapsed = perf_counter() - start

    path = request.url.path
    REQUEST_COUNT.labels(request.method, path, str(response.status_code)).inc()
    REQUEST_LATENCY.labels(request.method, path).observe(elapsed)
    response.headers["X-Trace-Id"] = trace_id
    return response


@app.exception_handler(FeedError)
async def feed_exception_handler(request: Request, exc: FeedError):
    payload, status = error_response(
        code=exc.code,
        message=str(exc) or exc.__class__.__name__,
        trace_id=_trace_id(request),
        status=503 if isinstance(exc, StoreIOError) else 502,
    )
    return JSONResponse(payload, status_code=status)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    payload, status = error_response(
        code="HTTP_ERROR",
        message=str(exc.detail),
        trace_id=_trace_id(request),
        status=exc.status_code,
    )
    return JSONResponse(payload, status_code=status)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    payload, status = error_response(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        trace_id=_trace_id(request),
        status=422,
        details={"errors": exc.errors()},
    )
    return JSONResponse(payload, status_code=status)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    payload, status = error_response(
        code="INTERNAL_ERROR",
        message=str(exc),
        trace_id=_trace_id(request),
        status=500,
    )
    return JSONResponse(payload, status_code=status)


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def run() -> None:
    import uvicorn

    uvicorn.run("newsfeed.main:app", host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
