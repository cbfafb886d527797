"""
=============================================================================
USERSVC - User Record Service Over Raw Sockets
=============================================================================

A minimal record-management service: HTTP-like requests arrive on a raw
TCP socket, are parsed by hand, routed by method and path, and turned into
create/read/update/delete calls against a PostgreSQL "users" table.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   client ──TCP──► SocketServer ──► Connection.read_request()        │
    │                                          │                          │
    │                                          ▼                          │
    │                    RequestParser ──► Router ──► UserHandlers        │
    │                                                      │              │
    │                                                      ▼              │
    │   client ◄──TCP── HTTPResponse ◄──────────── UserRepository ──► PG  │
    └─────────────────────────────────────────────────────────────────────┘

One connection is served at a time, start to finish.

=============================================================================
QUICK START
=============================================================================

    $ export DATABASE_URL=postgresql://localhost/users
    $ python -m usersvc

    $ curl -X POST localhost:8080/users -d '{"name":"Ada","email":"ada@example.org"}'
    User created
    $ curl localhost:8080/users
    [{"id": 1, "name": "Ada", "email": "ada@example.org"}]

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServiceConfig
from .server import UserServer, create_server

__all__ = ["UserServer", "ServiceConfig", "create_server", "__version__"]
