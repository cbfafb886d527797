"""
=============================================================================
CORE NETWORKING
=============================================================================

    SocketServer  Listening socket + serial accept loop
    Connection    One client socket: read request, send response, close

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLarge

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLarge",
]
