"""
HTTP hardening applied to every response.

- X-Content-Type-Options / X-Frame-Options / Referrer-Policy headers
- requests declaring a body larger than MAX_BODY_BYTES are rejected with 413
  before any route runs
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.config import settings

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
}


class SecurityMiddleware(BaseHTTPMiddleware):
    """Security headers plus a request body size cap"""

    def __init__(self, app, max_body_bytes: int = settings.MAX_BODY_BYTES):
        super().__init__(app)
        self.max_body_bytes = max_body_bytes

    async def dispatch(self, request: Request, call_next):
        declared = request.headers.get("content-length")
        if declared is not None:
            try:
                too_large = int(declared) > self.max_body_bytes
            except ValueError:
                return self._reject(
                    status.HTTP_400_BAD_REQUEST, "Invalid Content-Length header.", "BadRequest"
                )
            if too_large:
                logger.warning(
                    "rejected %s %s: body of %s bytes", request.method, request.url.path, declared
                )
                return self._reject(
                    status.HTTP_413_CONTENT_TOO_LARGE,
                    "Request body too large.",
                    "PayloadTooLarge",
                )

        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response

    @staticmethod
    def _reject(status_code: int, message: str, code: str) -> JSONResponse:
        response = JSONResponse(
            status_code=status_code,
            content={"success": False, "error": message, "code": code},
        )
        response.headers.update(SECURITY_HEADERS)
        return response
