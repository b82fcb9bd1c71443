"""Middleware for HTTP error logging."""

import logging
import time
from typing import Any, Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


def _request_fields(request: Request, status_code: int, duration_ms: float) -> Dict[str, Any]:
    fields: Dict[str, Any] = {
        "http_status": status_code,
        "method": request.method,
        "path": request.url.path,
        "duration_ms": round(duration_ms, 2),
        "user_id": request.headers.get("x-user-id"),
    }
    # Filled in by the router once the endpoint has matched
    path_params = request.scope.get("path_params") or {}
    for name in ("upload_id", "content_id"):
        if name in path_params:
            fields[name] = path_params[name]
    return fields


class HTTPErrorLoggingMiddleware(BaseHTTPMiddleware):
    """Log every 4xx at WARNING and every 5xx at ERROR.

    Upload and content ids from the path are attached so a failed chunk or
    finalize call can be traced back to its session.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        response = await call_next(request)

        if response.status_code < 400:
            return response

        fields = _request_fields(request, response.status_code, (time.time() - start_time) * 1000)
        if response.status_code < 500:
            logger.warning(f"Client error response: {request.method} {request.url.path}", extra=fields)
        else:
            logger.error(f"Server error response: {request.method} {request.url.path}", extra=fields)

        return response
