"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes this service actually sends, with their reason phrases.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  200   │ OK                    - Request succeeded                 │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  400   │ Bad Request           - Malformed request line, body, id  │
    │  404   │ Not Found             - Unknown route or no such user     │
    │  413   │ Payload Too Large     - Request exceeds max_request_size  │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  500   │ Internal Server Error - Store rejected the statement      │
    │  503   │ Service Unavailable   - Store connection is broken        │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes as an IntEnum.

    Being an IntEnum, members compare equal to plain integers:

        >>> HTTPStatus.OK == 200
        True
        >>> f"{HTTPStatus.NOT_FOUND:d}"
        '404'
    """

    OK = 200

    BAD_REQUEST = 400
    NOT_FOUND = 404
    PAYLOAD_TOO_LARGE = 413

    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 200 OK
                     ─── ──
                      │   │
                      │   └── Reason phrase
                      └────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
}
