"""Logging for the gateway: every record is tagged with the inbound request ID.

The ID lives in a ContextVar, so it follows the request through the pipeline
task and into the httpx calls it makes without being passed around.
"""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TextIO

NO_REQUEST = "-"

request_id_var: ContextVar[str] = ContextVar("request_id", default=NO_REQUEST)

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(request_id)s] %(name)s - %(message)s"

# Client libraries whose INFO output would repeat signed upload URLs and
# multipart parser chatter for every request
CLIENT_LOGGERS = ("httpx", "httpcore", "multipart", "python_multipart")


class RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()  # type: ignore[attr-defined]
        return True


def generate_request_id() -> str:
    """Generate a short unique request ID."""
    return uuid.uuid4().hex[:12]


@contextmanager
def request_context(request_id: str | None = None) -> Iterator[str]:
    """
    Tag log records emitted inside the block with a request ID.

    Args:
        request_id: ID to use; a new one is generated when omitted

    Yields:
        The request ID in effect for the block
    """
    rid = request_id or generate_request_id()
    token = request_id_var.set(rid)
    try:
        yield rid
    finally:
        request_id_var.reset(token)


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> logging.Handler:
    """Install a single request-aware handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        stream: Destination for log output, stderr by default.

    Returns:
        The installed handler.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIDFilter())

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()
    root.addHandler(handler)

    client_level = max(numeric_level, logging.WARNING)
    for name in CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(client_level)

    return handler
