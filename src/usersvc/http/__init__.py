"""
=============================================================================
HTTP LAYER
=============================================================================

The protocol half of the request dispatcher:

    request.py       Raw bytes → HTTPRequest   (RequestParser)
    router.py        HTTPRequest → handler     (Router)
    response.py      HTTPResponse → raw bytes  (ResponseBuilder, helpers)
    status_codes.py  HTTPStatus enum

None of these modules touch a socket.

=============================================================================
"""

from .status_codes import HTTPStatus
from .request import HTTPRequest, RequestParser, HTTPParseError
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,
    error,
    bad_request,
    not_found,
    payload_too_large,
    internal_error,
    service_unavailable,
)
from .router import Router, Route, RouteMatch, Handler

__all__ = [
    "HTTPStatus",
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "error",
    "bad_request",
    "not_found",
    "payload_too_large",
    "internal_error",
    "service_unavailable",
    "Router",
    "Route",
    "RouteMatch",
    "Handler",
]
