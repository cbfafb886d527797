"""
=============================================================================
USER SERVICE SERVER (REQUEST DISPATCHER)
=============================================================================

Ties the pieces together into the running service.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        USER SERVICE                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │                        ┌─────────────────┐                          │
    │                        │   UserServer    │                          │
    │                        └────────┬────────┘                          │
    │                                 │                                    │
    │            ┌────────────────────┼────────────────────┐              │
    │            ▼                    ▼                    ▼              │
    │    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐        │
    │    │ SocketServer │    │ RequestParser│    │    Router    │        │
    │    │ (serial loop)│    │ (bytes→req)  │    │ + middleware │        │
    │    └──────┬───────┘    └──────────────┘    └──────┬───────┘        │
    │           ▼                                       ▼                 │
    │    ┌──────────────┐                       ┌──────────────┐         │
    │    │  Connection  │                       │ UserHandlers │         │
    │    └──────────────┘                       └──────┬───────┘         │
    │                                                  ▼                  │
    │                                          ┌──────────────┐          │
    │                                          │UserRepository│──► PG    │
    │                                          └──────────────┘          │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
REQUEST LIFECYCLE
=============================================================================

    1. SocketServer accepts a connection
    2. Connection reads the request bytes
    3. RequestParser builds an HTTPRequest
    4. LoggingMiddleware → Router → UserHandlers → UserRepository
    5. HTTPResponse serialized and written back
    6. Connection closed (one request per connection)
    7. Only now is the next connection accepted

Any failure while serving one connection is turned into a response or a
log line. It never stops the accept loop.

=============================================================================
"""

import logging
import socket
from typing import Optional, Callable, Tuple

from .config import ServiceConfig
from .core import SocketServer, Connection, ConnectionState, RequestTooLarge
from .http import (
    HTTPRequest,
    RequestParser,
    HTTPParseError,
    HTTPResponse,
    HTTPStatus,
    Router,
    bad_request,
    payload_too_large,
    internal_error,
)
from .middleware import LoggingMiddleware, wrap
from .users import UserHandlers, UserRepository


logger = logging.getLogger(__name__)


class UserServer:
    """
    The user service.

    The store handle is passed in explicitly and owned by the server for
    its whole lifetime:

        repository = UserRepository.connect(config.database_url)
        repository.initialize()

        server = UserServer(config, repository)
        server.run()  # Blocks

    dispatch() runs the protocol and routing logic on raw bytes without a
    socket, which is what most tests use.
    """

    def __init__(self, config: ServiceConfig, repository: UserRepository):
        self.config = config
        self.repository = repository

        self._socket_server = SocketServer(self.config)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._router = Router()
        UserHandlers(repository).register(self._router)

        self._access_log = LoggingMiddleware()
        self._handler: Callable[[HTTPRequest], HTTPResponse] = wrap(
            self._router.handle, self._access_log
        )

    @property
    def address(self) -> Tuple[str, int]:
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._socket_server.is_running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start serving (blocking) until shutdown() or Ctrl+C.

        Args:
            host: Override config host.
            port: Override config port.
        """
        if host:
            self.config.host = host
        if port is not None:
            self.config.port = port

        logger.info(f"Starting {self.config.server_name} on {self.config.host}:{self.config.port}")
        self._print_startup_banner()

        try:
            self._socket_server.start(self._process_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            logger.info("Server stopped")

    def shutdown(self):
        """Stop accepting connections. The current one is finished first."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._socket_server.wait_until_ready(timeout)

    def _print_startup_banner(self):
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"║  {self.config.server_name} running")
        print(f"║  http://{self.config.host}:{self.config.port}")
        print("║  Serial mode: one connection at a time")
        print("║  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()
        self._router.print_routes()

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def dispatch(self, raw: bytes, client_address: Tuple[str, int] = ("", 0)) -> HTTPResponse:
        """
        Turn one raw request into one response.

        Never raises: parse failures become 400/413, handler crashes
        become 500.
        """
        try:
            request = self._parser.parse(raw, client_address)
        except HTTPParseError as e:
            logger.info(f"Unparseable request from {client_address[0] or '-'}: {e}")
            if e.status_code == HTTPStatus.PAYLOAD_TOO_LARGE:
                return self._reject(payload_too_large(), client_address)
            return self._reject(bad_request(), client_address)

        try:
            return self._handler(request)
        except Exception as e:
            logger.exception(f"Handler error for {request.method} {request.path}: {e}")
            return internal_error()

    def _reject(self, response: HTTPResponse, client_address: Tuple[str, int]) -> HTTPResponse:
        """
        Pass a response for a request that never parsed through the access
        log, so it gets a log line and an X-Request-ID like any other.
        """
        unparsed = HTTPRequest(method="-", path="-", client_address=client_address)
        return self._access_log(unparsed, lambda request: response)

    def _process_connection(self, conn: Connection):
        """
        Serve exactly one request on a connection, then close it.

        Runs inline in the accept loop, so nothing else is served until
        it returns.
        """
        with conn:
            try:
                try:
                    raw = conn.read_request()
                except RequestTooLarge as e:
                    logger.warning(f"[{conn.id}] {e}")
                    response = self._reject(payload_too_large(), conn.address)
                    conn.send_response(response.to_bytes())
                    return

                if raw is None:
                    logger.debug(f"[{conn.id}] Client closed without sending a request")
                    return

                conn.state = ConnectionState.PROCESSING
                response = self.dispatch(raw, conn.address)
                conn.send_response(response.to_bytes())

            except socket.timeout:
                logger.warning(f"[{conn.id}] Timed out reading from {conn.client_ip}")
            except OSError as e:
                logger.warning(f"[{conn.id}] Connection error: {e}")


def create_server(config: ServiceConfig) -> UserServer:
    """
    Build a ready-to-run server from configuration.

    Validates the configuration, connects to the store and makes sure the
    users table exists. Any failure here is fatal for the process.

    Raises:
        ValueError: Invalid configuration (e.g. DATABASE_URL missing).
        StoreError: Store unreachable or schema creation failed.
    """
    config.validate()

    repository = UserRepository.connect(config.database_url)
    try:
        repository.initialize()
    except Exception:
        repository.close()
        raise

    return UserServer(config, repository)


def setup_logging(log_level: str = "INFO"):
    """Configure root logging the same way for the CLI and the server."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("usersvc").setLevel(level)
