"""
Global middleware and exception handlers.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from connectors.errors import ConnectionsError

logger = logging.getLogger(__name__)


def register_middleware(app: FastAPI) -> None:
    """Attach any app-level middleware."""

    @app.middleware("http")
    async def request_timer(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.debug("%s %s — %.3fs", request.method, request.url.path, elapsed)
        return response


def register_exception_handlers(app: FastAPI) -> None:
    """Render connection errors as ``{"error": kind, "detail": ...}``."""

    @app.exception_handler(ConnectionsError)
    async def connections_error_handler(request: Request, exc: ConnectionsError) -> JSONResponse:
        log = logger.error if exc.http_status >= 500 else logger.info
        log("%s %s failed: %s (%s)", request.method, request.url.path, exc.kind, exc.detail)
        return JSONResponse(status_code=exc.http_status, content=exc.to_dict())
