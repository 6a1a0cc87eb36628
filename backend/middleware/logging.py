"""Per-request access log for development.

One line per request with a short correlation id, the redacted query string,
the client address and the outcome. Responses that end a browser session
(auth cookies cleared) are marked so logout and failed refresh show up
without logging any cookie value. Only installed when APP_MODE is dev.
"""

import logging
import time
import uuid
from typing import Callable, Dict, Mapping

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from services.audit import get_client_info

logger = logging.getLogger("api.requests")

# Probes and docs
QUIET_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json", "/favicon.ico"})

# Compared case-insensitively; values are replaced, keys kept
REDACTED_PARAMS = frozenset({"token", "password", "code", "key", "refreshtoken", "accesstoken"})

SESSION_COOKIES = ("accessToken=", "refreshToken=")


def redact_query_params(params: Mapping[str, str]) -> Dict[str, str]:
    return {k: ("***" if k.lower() in REDACTED_PARAMS else v) for k, v in params.items()}


def _clears_session(response: Response) -> bool:
    for header in response.headers.getlist("set-cookie"):
        if header.startswith(SESSION_COOKIES) and "Max-Age=0" in header:
            return True
    return False


def _level_for(status_code: int, method: str) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.DEBUG if method == "GET" else logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log method, path and status of every non-probe request.

    Request bodies and cookies are never read: on the auth endpoints they
    carry passwords and tokens.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        request_id = uuid.uuid4().hex[:8]
        client_ip, _ = get_client_info(request)
        desc = f"[{request_id}] {request.method} {request.url.path}"
        if request.query_params:
            desc += f" params={redact_query_params(request.query_params)}"
        desc += f" client={client_ip}"

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("%s - unhandled (%.3fs)", desc, time.perf_counter() - started)
            raise
        elapsed = time.perf_counter() - started

        suffix = " session-cleared" if _clears_session(response) else ""
        logger.log(
            _level_for(response.status_code, request.method),
            "%s - %d (%.3fs)%s",
            desc,
            response.status_code,
            elapsed,
            suffix,
        )

        response.headers["X-Request-ID"] = request_id
        return response


def configure_request_logging(log_level: str = "INFO") -> None:
    """Give the access log its own handler so it does not double up with the root logger."""
    request_logger = logging.getLogger("api.requests")
    request_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    request_logger.propagate = False

    if not request_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        request_logger.addHandler(handler)
