"""Error normalization and handlers.

Errors raised before a stream starts become a single SSE error frame with a
real status code. Once the status line is out, the relay reports failures
in-band instead (see features/streaming/relay.py).
"""

import logging
from typing import Optional
from uuid import uuid4

from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse, Response
from starlette.requests import Request

from ideagen.core.logging import get_request_id
from ideagen.features.streaming.sse import SSE_HEADERS, error_event


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class AuthError(AppError):
    """Missing, malformed, expired or badly signed credential, or unreachable key set."""
    code = "unauthorized"
    status_code = 401


class ConfigError(AppError):
    """A required secret or key is not configured."""
    code = "config_error"
    status_code = 500


class ProviderError(AppError):
    """The upstream completion stream failed to open or broke mid-flight."""
    code = "provider_error"
    status_code = 502


class TransportError(AppError):
    """The client went away. Nothing can be sent."""
    code = "client_disconnected"
    status_code = 499


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str) -> dict:
    return {
        "error": {"code": code, "message": message, "request_id": request_id},
        "detail": message,
    }


def sse_error_response(message: str, status_code: int, request_id: str) -> Response:
    response = Response(
        content=error_event(message),
        status_code=status_code,
        media_type="text/event-stream",
        headers=dict(SSE_HEADERS),
    )
    response.headers["x-request-id"] = request_id
    return response


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    logger = logging.getLogger("ideagen")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    return sse_error_response(exc.message, exc.status_code, rid)


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("ideagen")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers["x-request-id"] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("ideagen")
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers["x-request-id"] = rid
    return response
