"""
HTTP middleware applied before routing.

RequestContextMiddleware  resets the structlog context and binds method/path
BodySizeLimitMiddleware   answers 413 when Content-Length exceeds the limit
"""

from typing import Callable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from declutter_api.exceptions import PayloadTooLargeError, ValidationError
from declutter_api.logging import clear_log_context, log_context, logger


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable):
        clear_log_context()
        log_context(method=request.method, path=request.url.path)
        return await call_next(request)


class BodySizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject oversized bodies from their declared length, before they are read."""

    def __init__(self, app: ASGIApp, max_bytes: int):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next: Callable):
        declared = request.headers.get("content-length")
        if declared is not None:
            try:
                length = int(declared)
            except ValueError:
                error = ValidationError("Invalid Content-Length header")
                return JSONResponse(status_code=error.status_code, content=error.to_dict())
            if length > self.max_bytes:
                error = PayloadTooLargeError()
                logger.warning("Request body too large", content_length=length, limit=self.max_bytes)
                return JSONResponse(status_code=error.status_code, content=error.to_dict())
        return await call_next(request)
