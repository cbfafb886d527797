"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds the HTTP/1.1 responses the service writes back to clients.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP RESPONSE STRUCTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   HTTP/1.1 200 OK\r\n                      ◄── status line          │
    │   Content-Type: application/json\r\n       ◄── headers              │
    │   Content-Length: 48\r\n                                             │
    │   Connection: close\r\n                                              │
    │   \r\n                                     ◄── blank line           │
    │   {"id": 1, "name": "Ada", "email": "..."} ◄── body                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every connection carries exactly one request, so every response announces
"Connection: close" and a Content-Length.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Union
import json

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    Use ResponseBuilder or the helper functions at the bottom of this
    module instead of constructing it by hand.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def to_bytes(self) -> bytes:
        """
        Serialize the response for socket.sendall().

            HTTP/1.1 404 Not Found\r\n
            Content-Length: 14\r\n       ← auto-calculated
            Connection: close\r\n        ← always, no keep-alive
            \r\n
            User not found
        """
        response_headers = dict(self.headers)

        if "Content-Length" not in response_headers:
            response_headers["Content-Length"] = str(len(self.body))

        response_headers.setdefault("Connection", "close")

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json({"id": 1, "name": "Ada", "email": "ada@example.org"})
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set a raw body without touching Content-Type."""
        if isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        """Set a plain text body and its Content-Type."""
        self._body = text.encode("utf-8")
        self._headers["Content-Type"] = TEXT_CONTENT_TYPE
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        """
        Set a JSON body and its Content-Type.

        ensure_ascii=False keeps non-ASCII names readable on the wire.
        """
        self._body = json.dumps(data, ensure_ascii=False).encode("utf-8")
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# Success responses carry a Content-Type. Error responses carry only a short
# plain message and no Content-Type, which is all clients of this service
# have ever relied on.
#
#     return ok({"id": 1, ...})
#     return ok("User created")
#     return not_found("User not found")
#
# =============================================================================

def ok(body: Union[str, dict, list] = "") -> HTTPResponse:
    """
    Create a 200 OK response.

    dict/list → JSON body, str → plain text body.
    """
    builder = ResponseBuilder().status(HTTPStatus.OK)
    if isinstance(body, (dict, list)):
        builder.json(body)
    else:
        builder.text(body)
    return builder.build()


def error(status: HTTPStatus, message: str = "") -> HTTPResponse:
    """Create an error response with a bare message body."""
    return ResponseBuilder().status(status).body(message).build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return error(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "") -> HTTPResponse:
    """404 Not Found. Unmatched routes use the empty default body."""
    return error(HTTPStatus.NOT_FOUND, message)


def payload_too_large(message: str = "Payload Too Large") -> HTTPResponse:
    return error(HTTPStatus.PAYLOAD_TOO_LARGE, message)


def internal_error(message: str = "Error") -> HTTPResponse:
    """500 Internal Server Error. Never expose store details to the client."""
    return error(HTTPStatus.INTERNAL_SERVER_ERROR, message)


def service_unavailable(message: str = "Service Unavailable") -> HTTPResponse:
    return error(HTTPStatus.SERVICE_UNAVAILABLE, message)
