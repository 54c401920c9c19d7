"""
=============================================================================
HTTP STATUS CODES (RFC 9110)
=============================================================================

The status codes this server can emit, with their reason phrases.

=============================================================================
WHICH CODES DOES A DOCUMENT SERVER NEED?
=============================================================================

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ 200 OK                  - document, asset, health check   │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  3xx   │ 304 Not Modified        - client cache is still current   │
    │        │ 307 Temporary Redirect  - /favicon.ico → favicon asset    │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  4xx   │ 400 Bad Request         - malformed request line/headers  │
    │        │ 404 Not Found           - unregistered path               │
    │        │ 405 Method Not Allowed  - anything but GET                │
    │        │ 408 Request Timeout     - client never finished sending   │
    │        │ 412 Precondition Failed - If-Match did not match          │
    │        │ 413 Payload Too Large   - request over max_request_size   │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  5xx   │ 500 Internal Error      - handler raised                  │
    │        │ 503 Service Unavailable - worker queue full               │
    │        │ 505 Version Not Supp.   - not HTTP/1.0 or HTTP/1.1        │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
BODILESS STATUSES
=============================================================================

304 responses never carry a message body. The Content-Type and
Content-Length a handler sets describe the *cached* representation, not
this message, so the serializer drops them.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.NOT_MODIFIED == 304
        True
        >>> HTTPStatus.NOT_MODIFIED.phrase
        'Not Modified'
    """

    # 2xx SUCCESS
    OK = 200

    # 3xx REDIRECTION
    NOT_MODIFIED = 304              # Cached version is still valid
    TEMPORARY_REDIRECT = 307        # Like 302 but preserves HTTP method

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PRECONDITION_FAILED = 412       # Conditional request (If-Match) failed
    PAYLOAD_TOO_LARGE = 413

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 304 Not Modified
                     ─── ────────────
                      │       └── phrase
                      └────────── code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def allows_body(self) -> bool:
        """False for 304, which must not carry a body."""
        return self != HTTPStatus.NOT_MODIFIED


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",

    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.TEMPORARY_REDIRECT: "Temporary Redirect",

    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PRECONDITION_FAILED: "Precondition Failed",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",

    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
