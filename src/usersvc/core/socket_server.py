"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop.

SOCKET LIFECYCLE (Server Side):
────────────────────────────────

    1. socket()    Create a TCP socket
    2. bind()      Reserve IP:PORT
    3. listen()    Let the OS queue incoming connections (backlog)
    4. accept()    Take the next queued connection (blocks)
    5. close()     Release the listening socket on shutdown

=============================================================================
SERIAL PROCESSING
=============================================================================

The accept loop calls the connection handler INLINE. The next accept()
only happens after the handler returns, so exactly one client is served
at a time and everything else waits in the OS backlog:

    ┌─────────────────────────────────────────────────────────────────┐
    │   while running:                                                │
    │       conn = accept()          ◄── blocks (1s timeout)          │
    │       handler(conn)            ◄── read, route, store, reply    │
    │       (handler closes conn)                                     │
    └─────────────────────────────────────────────────────────────────┘

The 1 second accept timeout only exists so that shutdown() from another
thread (tests) is noticed promptly.

=============================================================================
"""

import socket
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServiceConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

    Usage:
        def handle_connection(conn: Connection):
            with conn:
                ...

        server = SocketServer(config)
        server.start(handle_connection)  # Blocks until shutdown()
    """

    def __init__(self, config: ServiceConfig):
        """
        Initialize the socket server.

        The socket is created lazily in start().
        """
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._running = False
        self._ready_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The bound (host, port).

        After start() this reflects the real port, which matters when the
        configured port is 0 and the OS picked one.
        """
        if self._socket is not None:
            return self._socket.getsockname()[:2]
        return (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        """
        Create and configure the listening socket.

        SO_REUSEADDR avoids "Address already in use" while the previous
        process's socket is still in TIME_WAIT after a restart.
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.settimeout(1.0)
        return sock

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Bind, listen and run the accept loop. BLOCKS until shutdown().

        Args:
            connection_handler: Called once per accepted connection, in
                                this thread. Owns closing the connection.

        Raises:
            OSError: If the address cannot be bound.
        """
        self._socket = self._create_socket()

        try:
            self._socket.bind((self.config.host, self.config.port))
        except OSError as e:
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            self._socket.close()
            self._socket = None
            raise

        self._socket.listen(self.config.backlog)

        self._running = True
        self._ready_event.set()

        host, port = self.address
        logger.info(f"Server listening on {host}:{port}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        """Accept one connection, hand it off, repeat."""
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue  # Check self._running again
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                max_request_size=self.config.max_request_size,
            )

            connection_handler(conn)

    def shutdown(self):
        """
        Ask the accept loop to stop. Safe to call from any thread and
        more than once.
        """
        logger.info("Shutting down socket server...")
        self._running = False

    def _cleanup(self):
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        self._ready_event.clear()
        logger.info("Socket server stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. Useful in tests."""
        return self._ready_event.wait(timeout)

