"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: read one request, send one response,
close. There is no keep-alive, so a Connection lives for exactly one
request/response exchange.

=============================================================================
READING A REQUEST
=============================================================================

TCP is a byte stream, not a message protocol. A single recv() may return
half a request. The first read is one recv(buffer_size), which is enough
for almost every request this service sees. After that:

    ┌─────────────────────────────────────────────────────────────────┐
    │   recv(buffer_size) ──► append to buffer                        │
    │          │                                                      │
    │          ├── peer closed (b"")           → return what we have  │
    │          ├── buffer > max_request_size   → RequestTooLarge      │
    │          ├── no "\r\n\r\n", short read    → complete (parser     │
    │          │                                  decides)             │
    │          ├── no "\r\n\r\n", full read     → read again           │
    │          ├── body < Content-Length        → read again           │
    │          └── otherwise                    → complete             │
    └─────────────────────────────────────────────────────────────────┘

Without a Content-Length the request is complete as soon as the header
terminator has been seen.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple
import uuid


logger = logging.getLogger(__name__)


class RequestTooLarge(Exception):
    """The client sent, or announced, more than max_request_size bytes."""

    def __init__(self, size: int, limit: int):
        super().__init__(f"Request of {size} bytes exceeds the {limit} byte limit")
        self.size = size
        self.limit = limit


class ConnectionState(Enum):
    """Connection lifecycle states, used in debug logs."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    Represents a single client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier for log correlation.
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
    """

    socket: socket.socket
    address: Tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 1024
    timeout: Optional[float] = 30.0
    max_request_size: int = 64 * 1024

    def __post_init__(self):
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one HTTP request from the socket.

        Returns:
            The raw request bytes, or None if the client closed the
            connection without sending anything.

        Raises:
            RequestTooLarge: If the request grows beyond max_request_size, or
                its Content-Length announces that it will.
            socket.timeout: If the client stalls longer than the timeout.
            OSError: On any other transport failure.
        """
        self.state = ConnectionState.READING
        buffer = b""

        while True:
            chunk = self.socket.recv(self.buffer_size)
            if not chunk:
                break  # Peer closed its side

            buffer += chunk
            if len(buffer) > self.max_request_size:
                raise RequestTooLarge(len(buffer), self.max_request_size)

            if self._is_complete(buffer, len(chunk)):
                break

        return buffer or None

    def _is_complete(self, buffer: bytes, last_read: int) -> bool:
        """
        Decide whether the buffered bytes form a whole request.

        Headers terminated and at least Content-Length body bytes read.
        Once the headers are in, a Content-Length that would take the
        request past max_request_size is rejected without reading the body.
        A short read without any header terminator means the client has
        sent everything it is going to send (a bare request line, or
        garbage), so that is complete too and the parser decides.
        """
        header_end = buffer.find(b"\r\n\r\n")
        if header_end == -1:
            return last_read < self.buffer_size

        announced = header_end + 4 + self._parse_content_length(buffer[:header_end])
        if announced > self.max_request_size:
            raise RequestTooLarge(announced, self.max_request_size)
        return len(buffer) >= announced

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Find Content-Length in raw header bytes.

        A simple scan, since the request has not been parsed yet.
        Missing or invalid values count as 0.
        """
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send response data to the client.

        Uses sendall() so a partially filled send buffer never truncates
        the response.

        Returns:
            True if the send succeeded, False if the connection was lost.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection.

        shutdown(SHUT_WR) first so the client sees a clean FIN after the
        response, then release the file descriptor.
        """
        if self.state == ConnectionState.CLOSED:
            return

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.3f}s")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
