"""
Request logging middleware.

Each request gets an ``X-Request-ID`` (taken from the caller or minted here)
that is bound into structlog's context together with the active trace id,
so every log line emitted while serving the request carries both.
"""
import time
import uuid
from fastapi import Request
from opentelemetry import trace
import structlog

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def current_trace_id() -> str:
    context = trace.get_current_span().get_span_context()
    return format(context.trace_id, '032x') if context.is_valid else ""


async def logging_middleware(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        trace_id=current_trace_id(),
        method=request.method,
        path=request.url.path,
    )

    started = time.perf_counter()
    logger.debug("Request started",
                 client_ip=request.client.host if request.client else None,
                 user_agent=request.headers.get("user-agent", ""))
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Request crashed")
        raise
    elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

    response.headers[REQUEST_ID_HEADER] = request_id
    if response.status_code >= 500:
        log = logger.error
    elif response.status_code >= 400:
        log = logger.warning
    else:
        log = logger.info
    log("Request completed", status_code=response.status_code, latency_ms=elapsed_ms)
    return response
