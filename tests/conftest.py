"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Dict, Generator, List, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from usersvc import ServiceConfig, UserServer
from usersvc.users import User, UserNotFound


class InMemoryUserRepository:
    """
    Dict-backed stand-in for UserRepository with the same interface and
    the same not-found semantics.

    Set `fail_with` to an exception instance to make every call raise it.
    """

    def __init__(self):
        self.rows: Dict[int, User] = {}
        self.next_id = 1
        self.fail_with: Optional[Exception] = None
        self.initialized = 0
        self.closed = False

    def _check(self):
        if self.fail_with is not None:
            raise self.fail_with

    def initialize(self) -> None:
        self._check()
        self.initialized += 1

    def insert(self, name: str, email: str) -> int:
        self._check()
        user_id = self.next_id
        self.next_id += 1
        self.rows[user_id] = User(id=user_id, name=name, email=email)
        return user_id

    def fetch_by_id(self, user_id: int) -> User:
        self._check()
        if user_id not in self.rows:
            raise UserNotFound(user_id)
        user = self.rows[user_id]
        return User(id=user.id, name=user.name, email=user.email)

    def fetch_all(self) -> List[User]:
        self._check()
        return [User(id=u.id, name=u.name, email=u.email) for u in self.rows.values()]

    def update_by_id(self, user_id: int, name: str, email: str) -> None:
        self._check()
        if user_id not in self.rows:
            raise UserNotFound(user_id)
        self.rows[user_id] = User(id=user_id, name=name, email=email)

    def delete_by_id(self, user_id: int) -> None:
        self._check()
        if user_id not in self.rows:
            raise UserNotFound(user_id)
        del self.rows[user_id]

    def close(self) -> None:
        self.closed = True


def build_request(method: str, path: str, body: str = "", headers: Optional[Dict[str, str]] = None) -> bytes:
    """Build raw request bytes the way curl would send them."""
    encoded = body.encode("utf-8")
    lines = [f"{method} {path} HTTP/1.1", "Host: localhost:8080"]
    for name, value in (headers or {}).items():
        lines.append(f"{name}: {value}")
    if encoded:
        lines.append("Content-Type: application/json")
        lines.append(f"Content-Length: {len(encoded)}")
    return ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8") + encoded


@pytest.fixture
def raw_request():
    """The build_request() helper, for tests that craft their own requests."""
    return build_request


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /users/42 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name":"Ada","email":"ada@example.org"}'
    return (
        b"POST /users HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
    ) + body


@pytest.fixture
def config() -> ServiceConfig:
    """Default test configuration."""
    return ServiceConfig(
        database_url="postgresql://test@localhost/test",
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def server(config: ServiceConfig, repository: InMemoryUserRepository) -> UserServer:
    """A server that is never started; use server.dispatch()."""
    return UserServer(config, repository)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class ServerThread:
    """Runs a UserServer in a background thread."""

    def __init__(self, server: UserServer, port: int):
        self.server = server
        self.port = port
        self._thread: Optional[threading.Thread] = None

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"port": self.port},
            daemon=True,
        )
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def send(self, raw: bytes, timeout: float = 5.0) -> bytes:
        """Send raw bytes on a fresh connection and read until the server closes."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as sock:
            sock.sendall(raw)
            chunks = []
            while True:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)


@pytest.fixture
def live_server(config: ServiceConfig, repository: InMemoryUserRepository, free_port: int) -> Generator[ServerThread, None, None]:
    """A running server on a free port backed by the in-memory repository."""
    thread = ServerThread(UserServer(config, repository), free_port)
    thread.start()

    yield thread

    thread.stop()
