"""
Exception handlers.

AuthServiceError subclasses render as {"detail", "code"} with their status.
Client-caused failures are logged at WARNING with the internal reason,
infrastructure failures at ERROR; the internal reason never reaches the body.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import InterfaceError, OperationalError

from services.errors import AuthServiceError, StoreUnavailableError

logger = logging.getLogger(__name__)

MAX_ERROR_STRING_CHARS = 400
MAX_ERROR_CONTAINER_ITEMS = 50
MAX_ERROR_DEPTH = 8


def _truncate_string(value: str, max_chars: int = MAX_ERROR_STRING_CHARS) -> str:
    if len(value) <= max_chars:
        return value
    return f"{value[:max_chars]}…(truncated)"


def _sanitize_for_json(value: Any, *, _depth: int = 0) -> Any:
    """
    Make validation error payloads safe to encode and bounded in size.

    RequestValidationError details echo user input, which may contain unpaired
    surrogates (breaks the JSON encoder) or be arbitrarily large. Passwords
    are reflected too, so `input` values are dropped entirely.
    """
    if _depth > MAX_ERROR_DEPTH:
        return "<max depth reached>"
    if value is None:
        return None
    if isinstance(value, (int, float, bool)):
        return value
    if isinstance(value, str):
        safe = value.encode("utf-8", errors="replace").decode("utf-8", errors="replace")
        return _truncate_string(safe)
    if isinstance(value, bytes):
        return _truncate_string(value.decode("utf-8", errors="replace"))
    if isinstance(value, (list, tuple, set)):
        value = list(value)
        out = [_sanitize_for_json(v, _depth=_depth + 1) for v in value[:MAX_ERROR_CONTAINER_ITEMS]]
        if len(value) > MAX_ERROR_CONTAINER_ITEMS:
            out.append(f"... ({len(value) - MAX_ERROR_CONTAINER_ITEMS} more items truncated)")
        return out
    if isinstance(value, dict):
        items = [(k, v) for k, v in value.items() if k != "input"]
        result: dict[str, Any] = {}
        for k, v in items[:MAX_ERROR_CONTAINER_ITEMS]:
            result[str(_sanitize_for_json(k, _depth=_depth + 1))] = _sanitize_for_json(v, _depth=_depth + 1)
        if len(items) > MAX_ERROR_CONTAINER_ITEMS:
            result["__truncated__"] = f"{len(items) - MAX_ERROR_CONTAINER_ITEMS} more keys truncated"
        return result
    # Validation contexts may hold exception instances and other objects
    return _sanitize_for_json(str(value), _depth=_depth + 1)


def error_response(exc: AuthServiceError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.error_code},
        headers=headers,
    )


def log_service_error(request: Request, exc: AuthServiceError) -> None:
    logger.log(
        logging.WARNING if exc.is_client_error else logging.ERROR,
        "%s %s -> %d %s (%s)",
        request.method,
        request.url.path,
        exc.status_code,
        type(exc).__name__,
        exc.reason or exc.detail,
    )


async def auth_service_error_handler(request: Request, exc: AuthServiceError) -> JSONResponse:
    log_service_error(request, exc)
    return error_response(exc)


async def database_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    # Database failures outside the stores' own guards (audit flushes etc.)
    return await auth_service_error_handler(
        request, StoreUnavailableError(reason=f"{type(exc).__name__} outside store call")
    )


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    safe_errors = _sanitize_for_json(exc.errors())
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": safe_errors, "code": "VALIDATION_ERROR"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AuthServiceError, auth_service_error_handler)
    app.add_exception_handler(OperationalError, database_unavailable_handler)
    app.add_exception_handler(InterfaceError, database_unavailable_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
