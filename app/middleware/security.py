"""
Security headers for the CineScope account API
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Iterable, Optional

# Swagger UI loads its bundle from jsdelivr
DEFAULT_CSP_DIRECTIVES = (
    "default-src 'self'",
    "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
    "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
    "img-src 'self' https://image.tmdb.org https://fastapi.tiangolo.com data:",
    "frame-src https://www.youtube.com",
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers (clickjacking, sniffing, CSP, HSTS)"""

    def __init__(self, app, csp_directives: Optional[Iterable[str]] = None, hsts: bool = True):
        super().__init__(app)
        self.csp = "; ".join(csp_directives or DEFAULT_CSP_DIRECTIVES)
        self.hsts = hsts

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = self.csp

        # HSTS only makes sense once served over TLS
        if self.hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
