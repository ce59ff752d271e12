import time
import uuid

import structlog
from fastapi import Request

from src.utils.logger import get_client_ip, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


async def logging_middleware(request: Request, call_next):
    """Bind request context for every log line and log one entry per request.

    Health checks are passed through untouched.
    """
    if request.url.path.startswith("/health"):
        return await call_next(request)

    started = time.perf_counter()
    # Reuse the caller's id so frontend and API logs can be joined
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        ip_address=get_client_ip(request),
        method=request.method,
        path=request.url.path,
        request_id=request_id,
    )

    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id

    duration_ms = int((time.perf_counter() - started) * 1000)
    if response.status_code >= 500:
        log = logger.error
    elif response.status_code in (402, 409):
        # Out of credits or lost consumption race
        log = logger.warning
    else:
        log = logger.info
    log("request", status_code=response.status_code, duration=duration_ms)

    return response
