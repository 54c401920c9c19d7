"""
=============================================================================
RESPONSE RECORDER
=============================================================================

A decorator around a connection's response sink that remembers what was
sent, so every request can be logged exactly once after it is answered.

    handler ─► HTTPResponse.write_to(recorder)
                        │
                        ▼
               ┌──────────────────┐   write_header(status, head)   ┌────────────┐
               │ ResponseRecorder │ ─────────────────────────────► │ Connection │
               │  status_code     │   write(body)                  │            │
               │  written         │ ─────────────────────────────► │            │
               └──────────────────┘                                └────────────┘
                        │
                        ▼  log(request)
        level=INFO msg=response method=GET uri=/ status=200 bytes=442

Writes are forwarded unchanged. `written` counts only body bytes that the
connection accepted, so a 304 logs bytes=0 even though its headers
describe a 442 byte representation.

=============================================================================
"""

import logging

from ..http.status_codes import HTTPStatus


access_logger = logging.getLogger("mdhttp.access")


class ResponseRecorder:
    """
    Wraps a write_header()/write() sink and records status and body bytes.

    status_code starts at 200: a handler that writes a body without an
    explicit status has answered 200.
    """

    def __init__(self, inner):
        self.inner = inner
        self.status_code = int(HTTPStatus.OK)
        self.written = 0
        self.wrote_header = False

    def write_header(self, status: int, head: bytes) -> None:
        self.status_code = int(status)
        self.wrote_header = True
        self.inner.write_header(status, head)

    def write(self, data: bytes) -> int:
        count = self.inner.write(data)
        self.written += count
        return count

    def log(self, request) -> None:
        """Emit the single access event for request."""
        access_logger.info("response", extra={
            "method": request.method,
            "uri": request.target,
            "status": self.status_code,
            "bytes": self.written,
        })
