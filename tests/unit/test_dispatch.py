"""
Unit tests for request dispatch: raw bytes in, HTTPResponse out.

These run the full parser → middleware → router → handler → repository
chain through UserServer.dispatch(), with the in-memory repository from
conftest.py standing in for PostgreSQL.
"""

import json
import logging
import socket

import pytest

from usersvc import UserServer
from usersvc.core import Connection, ConnectionState
from usersvc.http import HTTPStatus, HTTPResponse
from usersvc.users import StoreError, StoreUnavailable


ADA = '{"name":"Ada","email":"ada@example.org"}'


def body_json(response: HTTPResponse):
    return json.loads(response.body.decode("utf-8"))


class TestCreate:
    """Tests for POST /users."""

    def test_create_then_list(self, server, raw_request):
        """Create Ada, then find her in the listing with a positive id."""
        response = server.dispatch(raw_request("POST", "/users", ADA))

        assert response.status == HTTPStatus.OK
        assert response.body == b"User created"

        response = server.dispatch(raw_request("GET", "/users"))

        assert response.status == HTTPStatus.OK
        assert response.headers["Content-Type"] == "application/json"
        users = body_json(response)
        assert len(users) == 1
        assert users[0]["name"] == "Ada"
        assert users[0]["email"] == "ada@example.org"
        assert isinstance(users[0]["id"], int) and users[0]["id"] > 0

    def test_create_ignores_body_id(self, server, repository, raw_request):
        server.dispatch(raw_request("POST", "/users", '{"id": 500, "name": "Ada", "email": "a@x"}'))

        assert list(repository.rows) == [1]

    @pytest.mark.parametrize("body", [
        '{"name":"Ada"}',
        '{"email":"ada@example.org"}',
        '{"name":"","email":"ada@example.org"}',
        '{"name":1,"email":"ada@example.org"}',
        "[]",
        "not json",
        r'{"name":"a\u0000b","email":"ada@example.org"}',
        r'{"name":"Ada","email":"ada\u0000@example.org"}',
        r'{"name":"\ud800","email":"ada@example.org"}',
    ])
    def test_malformed_body_is_400_and_creates_nothing(self, server, repository, raw_request, body: str):
        response = server.dispatch(raw_request("POST", "/users", body))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert repository.rows == {}

    def test_deeply_nested_body_is_400(self, server, repository, raw_request):
        response = server.dispatch(raw_request("POST", "/users", "[" * 50000))

        assert response.status == HTTPStatus.BAD_REQUEST
        assert repository.rows == {}

    def test_missing_body_separator_is_400(self, server, repository):
        response = server.dispatch(b"POST /users HTTP/1.1\r\nHost: x")

        assert response.status == HTTPStatus.BAD_REQUEST
        assert repository.rows == {}


class TestReadOne:
    """Tests for GET /users/<id>."""

    def test_round_trip(self, server, repository, raw_request):
        server.dispatch(raw_request("POST", "/users", ADA))
        user_id = max(repository.rows)

        response = server.dispatch(raw_request("GET", f"/users/{user_id}"))

        assert response.status == HTTPStatus.OK
        assert body_json(response) == {"id": user_id, "name": "Ada", "email": "ada@example.org"}

    def test_unknown_id_is_404(self, server, raw_request):
        response = server.dispatch(raw_request("GET", "/users/999"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"User not found"

    @pytest.mark.parametrize("path", ["/users/abc", "/users/", "/users/-1", "/users/1.0"])
    def test_non_integer_id_is_400(self, server, raw_request, path: str):
        response = server.dispatch(raw_request("GET", path))

        assert response.status == HTTPStatus.BAD_REQUEST

    def test_extra_segments_use_third_segment(self, server, raw_request):
        server.dispatch(raw_request("POST", "/users", ADA))

        response = server.dispatch(raw_request("GET", "/users/1/anything"))

        assert response.status == HTTPStatus.OK
        assert body_json(response)["id"] == 1


class TestReadAll:
    """Tests for GET /users."""

    def test_empty_list(self, server, raw_request):
        response = server.dispatch(raw_request("GET", "/users"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"[]"

    def test_listing_reflects_deletes(self, server, repository, raw_request):
        """After creating k users and deleting one, k-1 remain."""
        for i in range(4):
            server.dispatch(raw_request("POST", "/users", f'{{"name":"u{i}","email":"u{i}@x"}}'))

        response = server.dispatch(raw_request("DELETE", "/users/2"))
        assert response.status == HTTPStatus.OK

        users = body_json(server.dispatch(raw_request("GET", "/users")))
        assert len(users) == 3
        assert 2 not in [u["id"] for u in users]


class TestUpdate:
    """Tests for PUT /users/<id>."""

    def test_update_changes_only_target(self, server, raw_request):
        server.dispatch(raw_request("POST", "/users", ADA))
        server.dispatch(raw_request("POST", "/users", '{"name":"Bob","email":"bob@x"}'))

        response = server.dispatch(
            raw_request("PUT", "/users/1", '{"name":"Ada L.","email":"ada@lovelace.org"}')
        )

        assert response.status == HTTPStatus.OK
        assert response.body == b"User updated"

        first = body_json(server.dispatch(raw_request("GET", "/users/1")))
        second = body_json(server.dispatch(raw_request("GET", "/users/2")))
        assert first == {"id": 1, "name": "Ada L.", "email": "ada@lovelace.org"}
        assert second == {"id": 2, "name": "Bob", "email": "bob@x"}

    def test_update_unknown_id_is_404(self, server, repository, raw_request):
        response = server.dispatch(raw_request("PUT", "/users/7", ADA))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"User not found"
        assert repository.rows == {}

    def test_update_bad_body_is_400(self, server, raw_request):
        server.dispatch(raw_request("POST", "/users", ADA))

        response = server.dispatch(raw_request("PUT", "/users/1", '{"name":"x"}'))

        assert response.status == HTTPStatus.BAD_REQUEST

    def test_update_with_nul_is_400(self, server, repository, raw_request):
        server.dispatch(raw_request("POST", "/users", ADA))

        response = server.dispatch(
            raw_request("PUT", "/users/1", r'{"name":"A\u0000","email":"a@x"}')
        )

        assert response.status == HTTPStatus.BAD_REQUEST
        assert repository.rows[1].name == "Ada"

    def test_update_bad_id_is_400(self, server, raw_request):
        response = server.dispatch(raw_request("PUT", "/users/x", ADA))

        assert response.status == HTTPStatus.BAD_REQUEST


class TestDelete:
    """Tests for DELETE /users/<id>."""

    def test_delete(self, server, repository, raw_request):
        server.dispatch(raw_request("POST", "/users", ADA))

        response = server.dispatch(raw_request("DELETE", "/users/1"))

        assert response.status == HTTPStatus.OK
        assert response.body == b"User deleted"
        assert repository.rows == {}

    def test_delete_unknown_id_is_404(self, server, raw_request):
        response = server.dispatch(raw_request("DELETE", "/users/1"))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b"User not found"

    def test_delete_twice(self, server, raw_request):
        server.dispatch(raw_request("POST", "/users", ADA))

        assert server.dispatch(raw_request("DELETE", "/users/1")).status == HTTPStatus.OK
        assert server.dispatch(raw_request("DELETE", "/users/1")).status == HTTPStatus.NOT_FOUND


class TestUnmatchedRoutes:
    """Anything outside the route table is an empty 404."""

    @pytest.mark.parametrize("method,path", [
        ("GET", "/"),
        ("GET", "/accounts"),
        ("GET", "/users?page=1"),
        ("POST", "/users/1"),
        ("PATCH", "/users/1"),
        ("BREW", "/users"),
        ("get", "/users"),
        ("DELETE", "/users"),
        ("PUT", "/users"),
    ])
    def test_not_found(self, server, raw_request, method: str, path: str):
        response = server.dispatch(raw_request(method, path))

        assert response.status == HTTPStatus.NOT_FOUND
        assert response.body == b""


class TestProtocolErrors:
    """Tests for requests that never reach a handler."""

    @pytest.mark.parametrize("raw", [b"", b"GET\r\n\r\n", b"\r\n\r\n", b"   "])
    def test_malformed_request_line_is_400(self, server, raw: bytes):
        response = server.dispatch(raw)

        assert response.status == HTTPStatus.BAD_REQUEST

    def test_oversized_request_is_413(self, server, raw_request):
        body = '{"name":"' + "a" * (server.config.max_request_size + 1) + '","email":"x"}'

        response = server.dispatch(raw_request("POST", "/users", body))

        assert response.status == HTTPStatus.PAYLOAD_TOO_LARGE


class TestStoreFailures:
    """Tests for the store error mapping."""

    def test_store_unavailable_is_503(self, server, repository, raw_request):
        repository.fail_with = StoreUnavailable("connection lost")

        response = server.dispatch(raw_request("GET", "/users"))

        assert response.status == HTTPStatus.SERVICE_UNAVAILABLE

    @pytest.mark.parametrize("method,path,body", [
        ("POST", "/users", ADA),
        ("GET", "/users", ""),
        ("GET", "/users/1", ""),
        ("PUT", "/users/1", ADA),
        ("DELETE", "/users/1", ""),
    ])
    def test_store_error_is_500_everywhere(self, server, repository, raw_request, method, path, body):
        repository.fail_with = StoreError("statement rejected")

        response = server.dispatch(raw_request(method, path, body))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR
        assert response.body == b"Error"
        assert "Content-Type" not in response.headers

    def test_unexpected_exception_is_500(self, server, repository, raw_request):
        repository.fail_with = RuntimeError("boom")

        response = server.dispatch(raw_request("GET", "/users"))

        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR


class TestResponseShape:
    """Tests for headers added on every response."""

    def test_request_id_header(self, server, raw_request):
        response = server.dispatch(raw_request("GET", "/users"))

        assert len(response.headers["X-Request-ID"]) == 8

    def test_unparseable_request_goes_through_access_log(self, server, caplog):
        with caplog.at_level(logging.INFO, logger="usersvc.access"):
            response = server.dispatch(b"HELLO\r\n\r\n", ("10.0.0.9", 5000))

        assert response.status == HTTPStatus.BAD_REQUEST
        request_id = response.headers["X-Request-ID"]
        lines = [r.getMessage() for r in caplog.records if r.name == "usersvc.access"]
        assert len(lines) == 1
        assert lines[0].startswith("10.0.0.9 - - [")
        assert '"- -" 400 ' in lines[0]
        assert lines[0].endswith(f"rid={request_id}")

    def test_oversized_dispatch_has_request_id(self, config, repository, raw_request):
        config.max_request_size = 100
        server = UserServer(config, repository)

        response = server.dispatch(raw_request("POST", "/users", "x" * 200))

        assert response.status == HTTPStatus.PAYLOAD_TOO_LARGE
        assert len(response.headers["X-Request-ID"]) == 8

    def test_wire_format(self, server, raw_request):
        data = server.dispatch(raw_request("POST", "/users", ADA)).to_bytes()

        head, _, body = data.partition(b"\r\n\r\n")
        assert head.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Connection: close" in head
        assert b"Content-Length: 12" in head
        assert body == b"User created"


class TestProcessConnection:
    """Tests for serving one connection end to end over a socket pair."""

    @pytest.fixture
    def socket_pair(self):
        server_side, client_side = socket.socketpair()
        yield server_side, client_side
        client_side.close()

    def read_all(self, sock: socket.socket) -> bytes:
        chunks = []
        while True:
            chunk = sock.recv(4096)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    def test_serves_and_closes(self, server, socket_pair, raw_request):
        server_side, client_side = socket_pair
        client_side.sendall(raw_request("POST", "/users", ADA))

        conn = Connection(socket=server_side, address=("127.0.0.1", 1), timeout=2.0)
        server._process_connection(conn)

        assert conn.state == ConnectionState.CLOSED
        assert self.read_all(client_side).endswith(b"\r\n\r\nUser created")

    def test_oversized_request_gets_413(self, config, repository, socket_pair):
        config.buffer_size = 256
        config.max_request_size = 512
        server = UserServer(config, repository)
        server_side, client_side = socket_pair
        client_side.sendall(b"POST /users HTTP/1.1\r\nContent-Length: 2000\r\n\r\n" + b"x" * 2000)

        conn = Connection(
            socket=server_side,
            address=("127.0.0.1", 1),
            buffer_size=config.buffer_size,
            max_request_size=config.max_request_size,
            timeout=2.0,
        )
        server._process_connection(conn)

        # Unread request bytes make the peer see a reset after the response
        assert client_side.recv(4096).startswith(b"HTTP/1.1 413 Payload Too Large\r\n")
        assert repository.rows == {}

    def test_silent_client(self, server, socket_pair):
        server_side, client_side = socket_pair
        client_side.shutdown(socket.SHUT_WR)

        conn = Connection(socket=server_side, address=("127.0.0.1", 1), timeout=2.0)
        server._process_connection(conn)

        assert self.read_all(client_side) == b""

    def test_stalled_client_is_dropped(self, server, socket_pair):
        server_side, client_side = socket_pair
        client_side.sendall(b"POST /users HTTP/1.1\r\nContent-Length: 50\r\n\r\n")

        conn = Connection(socket=server_side, address=("127.0.0.1", 1), timeout=0.2)
        server._process_connection(conn)

        assert conn.state == ConnectionState.CLOSED
        assert self.read_all(client_side) == b""

