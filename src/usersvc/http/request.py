"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes read from a client socket into a structured HTTPRequest.

This parser is lenient. It implements the small subset of
HTTP/1.1 the user service speaks and nothing more:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   POST /users HTTP/1.1\r\n               ◄── request line            │
    │   Host: localhost:8080\r\n               ◄── headers                 │
    │   Content-Type: application/json\r\n                                 │
    │   Content-Length: 41\r\n                                             │
    │   \r\n                                   ◄── blank line              │
    │   {"name":"Ada","email":"ada@example.org"}  ◄── body                 │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PARSING RULES
=============================================================================

1. Decode the bytes as UTF-8, replacing invalid sequences instead of failing.
2. The request line is the first line. It is split on whitespace:
   token 0 is the method, token 1 is the path. Fewer than two tokens is a
   parse error. The version token is optional.
3. Header lines follow until the first blank line. Names are lowercased,
   lines without a colon are skipped.
4. The body is the last segment after splitting the whole text on the
   blank-line separator "\r\n\r\n". No separator means an empty body.

The method is NOT validated against a list of known methods and the path is
NOT normalized. Unknown methods and odd paths simply fail to match a route.

The parser never touches a socket, so it can be tested with plain bytes.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Tuple


HEADER_BODY_SEPARATOR = "\r\n\r\n"


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code that should be returned to the client:

        400 Bad Request        - Malformed request line
        413 Payload Too Large  - Request exceeds the size limit
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    Attributes:
        method:         Request method exactly as sent ("GET", "POST", ...)
        path:           Request target exactly as sent ("/users/42")
        version:        HTTP version token, "" if the client omitted it
        headers:        Header name (lowercase) → value
        body:           Decoded body text
        path_params:    Values captured by the router (":id", "*rest")
        client_address: (ip, port) of the peer
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    body: str = ""
    path_params: Dict[str, str] = field(default_factory=dict)
    client_address: Tuple[str, int] = ("", 0)

    def path_segment(self, index: int) -> Optional[str]:
        """
        Return one "/"-separated segment of the path.

        The leading slash produces an empty first segment, so for
        "/users/42" index 1 is "users" and index 2 is "42".
        """
        segments = self.path.split("/")
        if index < len(segments):
            return segments[index]
        return None


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER ARCHITECTURE
    ==========================================================================

        Raw Request Bytes
              │
              ▼
        ┌───────────────────────────────────────────────────────────────────┐
        │  1. Size Check ──────────► too large? HTTPParseError(413)         │
        │  2. Decode (UTF-8, errors="replace")                              │
        │  3. Request Line ────────► < 2 tokens? HTTPParseError(400)        │
        │  4. Headers (up to the first blank line)                          │
        │  5. Body (last segment after "\r\n\r\n", or "")                   │
        └───────────────────────────────────────────────────────────────────┘
              │
              ▼
        HTTPRequest dataclass

    ==========================================================================
    """

    def __init__(self, max_request_size: int = 64 * 1024):
        """
        Args:
            max_request_size: Maximum accepted request size in bytes.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: Tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Args:
            data: Raw HTTP request bytes from the socket.
            client_address: Client's (ip, port) tuple for logging.

        Returns:
            Parsed HTTPRequest object.

        Raises:
            HTTPParseError: If the request is too large or the request line
                            is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        text = data.decode("utf-8", errors="replace")

        lines = text.splitlines()
        if not lines:
            raise HTTPParseError("Empty request")

        method, path, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            body=self._extract_body(text),
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> Tuple[str, str, str]:
        """
        Split the request line into (method, path, version).

            "GET /users/42 HTTP/1.1"
             ─┬─ ────┬──── ───┬────
              │      │        └── version (optional)
              │      └─────────── path
              └────────────────── method
        """
        parts = line.split()
        if len(parts) < 2:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        version = parts[2] if len(parts) > 2 else ""
        return parts[0], parts[1], version

    def _parse_headers(self, lines: list) -> Dict[str, str]:
        """
        Parse "Name: value" lines until the first blank line.

        Repeated headers are joined with ", " as RFC 7230 allows.
        """
        headers: Dict[str, str] = {}

        for line in lines:
            if not line.strip():
                break  # End of header section

            name, sep, value = line.partition(":")
            if not sep or not name.strip():
                continue  # Lenient: skip malformed header lines

            name = name.strip().lower()
            value = value.strip()

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    def _extract_body(self, text: str) -> str:
        """
        Locate the body: the last segment after the blank-line separator.

        With no separator at all there is no body.
        """
        if HEADER_BODY_SEPARATOR not in text:
            return ""
        return text.split(HEADER_BODY_SEPARATOR)[-1]
