"""
CSRF Protection Middleware for FastAPI

Same-origin check for state-changing requests (POST, PUT, PATCH, DELETE):
- If an Origin header is present its host must match the Host header
- Otherwise, if a Referer header is present its host must match
- Requests carrying neither header are let through (non-browser clients)
"""

import logging
from typing import Callable, Optional
from urllib.parse import urlsplit

from fastapi import Request
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

PROTECTED_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

EXEMPT_PATHS: list[str] = [
    "/api/cron/",  # Scheduler calls, authenticated by bearer secret
    "/health",
]


def is_path_exempt(path: str) -> bool:
    return any(path.startswith(exempt) for exempt in EXEMPT_PATHS)


def _host_of(url: str) -> Optional[str]:
    try:
        host = urlsplit(url).netloc
    except ValueError:
        return None
    return host or None


def is_same_origin(request: Request) -> bool:
    host = request.headers.get("host")
    origin = request.headers.get("origin")
    referer = request.headers.get("referer")

    if origin:
        origin_host = _host_of(origin)
        if origin_host != host:
            logger.warning(f"🚫 CSRF attempt: Origin {origin_host} does not match host {host}")
            return False
    elif referer:
        referer_host = _host_of(referer)
        if referer_host != host:
            logger.warning(f"🚫 CSRF attempt: Referer {referer_host} does not match host {host}")
            return False

    return True


class CSRFMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if (
            request.method in PROTECTED_METHODS
            and not is_path_exempt(request.url.path)
            and not is_same_origin(request)
        ):
            return JSONResponse(
                status_code=403,
                content={"success": False, "error": "Cross-site request rejected"},
            )

        return await call_next(request)
