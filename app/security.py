"""Bearer credential extraction and request ID middleware."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.schemas import ErrorResponse
from transcription_gateway.core.exceptions import UnauthorizedError
from transcription_gateway.core.logging import request_context

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a unique request ID to every request and log request lifecycle."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        with request_context() as rid:
            request.state.request_id = rid
            start = time.perf_counter()
            logger.info("%s %s", request.method, request.url.path)
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.info(
                "%s %s -> %s (%.0f ms)",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )
            response.headers["X-Request-ID"] = rid
            return response


def extract_api_key(auth_header: str | None) -> str:
    """
    Extract the API key from an ``Authorization: Bearer <key>`` header.

    The key is not checked here; it is passed through to DashScope, which is
    the authority on whether it is valid.

    Raises:
        UnauthorizedError: If the header is missing, uses another scheme, or
            carries an empty key
    """
    if not auth_header:
        raise UnauthorizedError("Missing Authorization header")
    if not auth_header.startswith(BEARER_PREFIX):
        raise UnauthorizedError("Invalid Authorization header format. Expected: Bearer <api_key>")
    api_key = auth_header[len(BEARER_PREFIX):]
    if not api_key.strip():
        raise UnauthorizedError("API key is empty")
    return api_key


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Require a Bearer credential and store it on ``request.state.api_key``.

    Paths in ``public_paths`` (by default only /health) skip the check.
    """

    def __init__(self, app, public_paths: frozenset[str] = frozenset({"/health"})) -> None:  # noqa: ANN001
        super().__init__(app)
        self.public_paths = public_paths

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in self.public_paths or request.method == "OPTIONS":
            return await call_next(request)

        try:
            request.state.api_key = extract_api_key(request.headers.get("authorization"))
        except UnauthorizedError as e:
            logger.warning("Rejected %s %s: %s", request.method, request.url.path, e.message)
            return JSONResponse(
                status_code=e.status_code,
                content=ErrorResponse(error=e.public_message, code=e.status_code).model_dump(),
            )

        return await call_next(request)
