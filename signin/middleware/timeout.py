"""Fixed per-request timeout applied at the HTTP boundary."""

import asyncio
import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class RequestTimeoutMiddleware(BaseHTTPMiddleware):
    """
    Abort requests that run longer than ``timeout_seconds`` with a 504.

    Cancelling the handler does not stop a query already running in a
    worker thread; the database statement timeout bounds that work.
    """

    def __init__(self, app, timeout_seconds: float):
        super().__init__(app)
        self.timeout_seconds = timeout_seconds

    async def dispatch(self, request: Request, call_next):
        try:
            return await asyncio.wait_for(call_next(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.error(f"Request timed out after {self.timeout_seconds}s: {request.method} {request.url.path}")
            message = "request timed out"
            return JSONResponse(
                status_code=504,
                content={"error": message, "message": message, "code": "timeout"}
            )
