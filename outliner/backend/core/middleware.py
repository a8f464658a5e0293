"""
Request Context Middleware.

Tags each request with an id and a caller source, binds both into the
structlog context for the duration of the request, and reports how long
the response took.

    Request headers:   X-Request-ID (optional), X-Client-Source (optional)
    Response headers:  X-Request-ID, X-Response-Time ("12ms")
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from outliner.backend.core.logging import VALID_SOURCES, get_logger
from outliner.backend.core.utils import utc_now

logger = get_logger(__name__)


def _client_source(request: Request) -> str:
    source = request.headers.get("X-Client-Source", "unknown").lower()
    return source if source in VALID_SOURCES else "unknown"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Populates request.state.request_id, .source and .start_time."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        source = _client_source(request)
        started = utc_now()

        request.state.request_id = request_id
        request.state.source = source
        request.state.start_time = started

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            source=source,
            method=request.method,
            path=request.url.path,
        )
        logger.debug(
            "Request started",
            extra={"client_host": getattr(request.client, "host", None)},
        )

        def elapsed_ms() -> int:
            return int((utc_now() - started).total_seconds() * 1000)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "Request raised",
                extra={"duration_ms": elapsed_ms(), "error_type": type(exc).__name__},
            )
            raise
        else:
            duration_ms = elapsed_ms()
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms}ms"
            logger.debug(
                "Request finished",
                extra={"status_code": response.status_code, "duration_ms": duration_ms},
            )
            return response
        finally:
            # Worker tasks are reused; drop this request's bindings.
            structlog.contextvars.clear_contextvars()
