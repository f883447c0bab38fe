# =============================================================================
# app/middleware.py - Request Logging Middleware
# =============================================================================
# Logs one line per request (method, path, status, duration) and tags the
# response with a request id. An incoming X-Request-ID header is reused.
# =============================================================================

import logging
import time
import uuid

from fastapi import Request, Response

logger = logging.getLogger("app.requests")

REQUEST_ID_HEADER = "X-Request-ID"

# Probes hit these every few seconds; keep them at DEBUG
QUIET_PATHS = ("/api/v1/health",)


async def log_requests(request: Request, call_next) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    start = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.exception(
            f"{request.method} {request.url.path} failed after {duration_ms:.1f}ms [{request_id}]"
        )
        raise

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[REQUEST_ID_HEADER] = request_id

    level = logging.DEBUG if request.url.path.startswith(QUIET_PATHS) else logging.INFO
    if response.status_code >= 500:
        level = logging.ERROR
    logger.log(
        level,
        f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms [{request_id}]",
    )
    return response
