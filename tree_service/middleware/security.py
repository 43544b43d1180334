"""
Security headers middleware for the JSON API.
Production adds HSTS and a stricter referrer policy.
"""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp
from typing import Callable


class SecurityHeadersMiddleware(BaseHTTPMiddleware):

    def __init__(self, app: ASGIApp, production: bool = False):
        super().__init__(app)
        self.production = production

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        # docs pages need inline scripts from the FastAPI CDN bundle
        if request.url.path in ("/docs", "/redoc"):
            csp_directives = [
                "default-src 'self'",
                "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
                "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net",
                "img-src 'self' data: https:",
                "frame-ancestors 'none'",
            ]
        else:
            csp_directives = [
                "default-src 'none'",
                "frame-ancestors 'none'",
                "base-uri 'none'",
                "form-action 'none'",
            ]
        response.headers["Content-Security-Policy"] = "; ".join(csp_directives)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Cache-Control"] = "no-store"

        if self.production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
            response.headers["Referrer-Policy"] = "no-referrer"
        else:
            response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
