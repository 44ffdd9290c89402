from __future__ import annotations

import time
import uuid
from typing import Callable

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.utils.logger import add_request_context, get_logger

logger = get_logger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Ensures every request gets a correlation/request ID.
    Propagates existing header `X-Request-ID` if present; otherwise generates one.
    Adds `X-Request-ID` to the response, sets `request.state.request_id` and
    binds the id into the structlog context for the duration of the request.
    """

    header_name = "X-Request-ID"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.header_name) or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.monotonic()

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            response = await call_next(request)
            logger.info(
                "Request handled",
                status_code=response.status_code,
                duration_ms=int((time.monotonic() - start) * 1000),
                **add_request_context(request),
            )

        response.headers.setdefault(self.header_name, request_id)
        return response
