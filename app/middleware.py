import logging
import time
from typing import Callable, Dict, Tuple

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds the usual hardening headers to every response.
    HSTS is only sent when the app runs behind HTTPS in production.
    """

    def __init__(self, app, production: bool = False):
        super().__init__(app)
        self.production = production

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Cross-Origin-Opener-Policy"] = "same-origin"
        if self.production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Fixed-window request limit per client address, kept in process memory."""

    def __init__(self, app, requests_per_window: int = 1000, window_size: int = 60,
                 exempt_paths: Tuple[str, ...] = ("/health",)):
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.window_size = window_size
        self.exempt_paths = exempt_paths
        self.window = 0
        self.counters: Dict[str, int] = {}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        current_window = int(time.time() // self.window_size)

        if current_window != self.window:
            self.window = current_window
            self.counters = {}
        count = self.counters.get(client, 0)

        if count >= self.requests_per_window:
            logger.warning("Rate limit exceeded for %s", client)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"detail": "Too many requests from this IP, please try again later."},
                headers={"Retry-After": str(self.window_size)},
            )

        self.counters[client] = count + 1
        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_window)
        response.headers["X-RateLimit-Remaining"] = str(self.requests_per_window - count - 1)
        return response
