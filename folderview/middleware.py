"""
Middleware for folderview
"""

import logging
import time
from typing import Callable

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .errors import UpstreamIOError
from .metrics import endpoint_name

logger = logging.getLogger(__name__)


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    One access log line and one metrics sample per request

    Both are emitted once the response body has been sent, so the duration
    of a download covers the whole transfer.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        endpoint = endpoint_name(request.url.path)
        metrics = request.app.state.metrics
        started = time.monotonic()
        metrics.request_started(endpoint)

        try:
            response = await call_next(request)
        except Exception:
            metrics.request_finished(endpoint, 500, time.monotonic() - started)
            self._log_access(request, 500, "-", time.monotonic() - started)
            raise

        body = response.body_iterator

        async def finish_after_body():
            try:
                async for chunk in body:
                    yield chunk
            finally:
                duration = time.monotonic() - started
                metrics.request_finished(endpoint, response.status_code, duration)
                self._log_access(
                    request,
                    response.status_code,
                    response.headers.get("content-length", "-"),
                    duration,
                )

        response.body_iterator = finish_after_body()
        return response

    @staticmethod
    def _log_access(request: Request, status_code: int, size: str, duration: float):
        forwarded_for = request.headers.get("X-Forwarded-For", "")
        client = forwarded_for.split(",")[0].strip()
        if not client:
            client = request.client.host if request.client else "-"

        query = f"?{request.url.query}" if request.url.query else ""
        message = "%s %s %s%s %d %s %.1fms"
        args = (client, request.method, request.url.path, query, status_code, size, duration * 1000)

        if status_code >= 500:
            logger.error(message, *args)
        elif status_code >= 400:
            logger.warning(message, *args)
        else:
            logger.info(message, *args)


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Answers unhandled exceptions with an ``io_error`` body"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except HTTPException:
            raise
        except Exception as e:
            logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
            request.app.state.metrics.record_error(UpstreamIOError.kind)
            return JSONResponse(
                status_code=500,
                content={"error": f"Internal server error: {e}", "kind": UpstreamIOError.kind},
            )


def setup_middleware(app: FastAPI):
    """Setup all middleware for the application"""

    # Added last runs first: access logging wraps the exception guard
    app.add_middleware(ExceptionHandlerMiddleware)
    app.add_middleware(AccessLogMiddleware)

    logger.info("Middleware setup complete")
