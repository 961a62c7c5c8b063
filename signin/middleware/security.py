"""Security response headers."""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Baseline browser hardening headers for the console and kiosk pages."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Prevents MIME sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Kiosk and console pages are never framed by other sites
        response.headers["X-Frame-Options"] = "SAMEORIGIN"

        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # Admin API responses carry directory data; keep them out of shared caches
        if request.url.path.startswith("/api/admin") or request.url.path.startswith("/api/auth"):
            response.headers["Cache-Control"] = "no-store"

        return response
