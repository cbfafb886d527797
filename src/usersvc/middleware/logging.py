"""
=============================================================================
ACCESS LOGGING MIDDLEWARE
=============================================================================

Emits one access-log line per request on the "usersvc.access" logger:

    127.0.0.1 - - [19/Oct/2026:10:00:00 +0000] "POST /users" 200 12 3.41ms rid=1a2b3c4d

The request id is also returned to the client as X-Request-ID so a
failing call can be matched with its log line.

=============================================================================
"""

import time
import uuid
import logging
from dataclasses import dataclass

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger("usersvc.access")


@dataclass
class RequestLog:
    """One access-log entry."""

    request_id: str
    method: str
    path: str
    client_ip: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_text(self) -> str:
        """Apache-style common log line plus duration and request id."""
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms rid={self.request_id}'
        )


class LoggingMiddleware(Middleware):
    """
    Request logging middleware. Add it FIRST so its timing covers the
    whole request, store round trip included.
    """

    def __init__(self, include_request_id: bool = True, log_level: int = logging.INFO):
        self.include_request_id = include_request_id
        self.log_level = log_level

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms) rid={request_id}"
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        log_entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            client_ip=request.client_address[0],
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )
        logger.log(self.log_level, log_entry.to_text())

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)

        return response
