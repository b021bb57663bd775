"""Request context middleware — request ID and authentication outcome per request.

Learn: Every request starts with fresh structlog contextvars holding a
request_id, taken from the incoming X-Request-ID header or generated,
so auth.* log entries can be correlated with the request.

When the response is ready, one `http.request` entry records who the
request ran as (user_id, auth_source) and how it ended. The principal
comes from request.state, which get_auth_result_optional fills in:
call_next runs the app in its own task, so contextvars bound by the
dependency are not visible here.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

logger = structlog.get_logger()


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind the request ID, then log the authenticated principal and status."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        # Created before the app runs so the dependency writes into the same dict
        request.state.auth_result = None
        started = time.perf_counter()

        response: Response = await call_next(request)

        result = request.state.auth_result
        logger.info(
            "http.request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
            user_id=result.user_id if result is not None else None,
            auth_source=result.source if result is not None else None,
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
