"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Builds and serializes HTTP/1.1 responses (RFC 9112).

=============================================================================
RESPONSE ANATOMY
=============================================================================

    HTTP/1.1 200 OK\r\n                              ← status line
    Content-Type: text/html; charset=utf-8\r\n       ┐
    Etag: 9f86d081884c7d659a2feaa0c55ad015...\r\n    │ head
    Content-Length: 442\r\n                          │ (head_bytes)
    Date: Sat, 17 Oct 2026 12:00:00 GMT\r\n          │
    Server: mdhttp/1.0.0\r\n                         ┘
    \r\n
    <!DOCTYPE html PUBLIC ...                        ← body

The head and the body are written separately (see write_to) so the
response recorder can observe the status before any body byte goes out,
and count exactly the body bytes that were written.

=============================================================================
BODILESS RESPONSES
=============================================================================

A 304 never carries a body. For it the serializer drops:

    - the body itself
    - Content-Length and Content-Type

A 304 handler sets both headers to describe the cached representation; on
the wire they would claim a body that is not there, so they are stripped
here rather than in every handler.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Union

from .status_codes import HTTPStatus


_ENTITY_HEADERS = ("Content-Length", "Content-Type")


@dataclass
class HTTPResponse:
    """
    An HTTP response to be sent to the client.

    Use ResponseBuilder or the helper functions at the bottom of this module
    to construct one.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    def __post_init__(self):
        # Accept plain ints (e.g. HTTPParseError.status_code)
        self.status = HTTPStatus(self.status)

    @property
    def status_line(self) -> str:
        """HTTP-VERSION SP STATUS-CODE SP REASON-PHRASE, e.g. "HTTP/1.1 304 Not Modified"."""
        return f"{self.version} {self.status.value} {self.status.phrase}"

    @property
    def payload(self) -> bytes:
        """The bytes that actually go out after the head."""
        return self.body if self.status.allows_body else b""

    def head_bytes(self, server_name: str = "mdhttp") -> bytes:
        """
        Serialize the status line and headers, up to and including the
        blank line.

            Content-Length  auto-added from the body (unless bodiless)
            Date            auto-added, RFC 9110 HTTP-date in GMT
            Server          auto-added from server_name
        """
        response_headers = dict(self.headers)

        if self.status.allows_body:
            response_headers.setdefault("Content-Length", str(len(self.body)))
        else:
            for name in _ENTITY_HEADERS:
                response_headers.pop(name, None)

        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in response_headers.items())
        lines.append("")
        return "\r\n".join(lines).encode("latin-1") + b"\r\n"

    def to_bytes(self, server_name: str = "mdhttp") -> bytes:
        """Complete response (head + payload) ready for socket.sendall()."""
        return self.head_bytes(server_name) + self.payload

    def write_to(self, writer, server_name: str = "mdhttp") -> None:
        """
        Write this response through a two-phase sink.

        The sink must offer write_header(status, head) and write(body); both
        the Connection and the ResponseRecorder wrapping it do.
        """
        writer.write_header(self.status, self.head_bytes(server_name))
        payload = self.payload
        if payload:
            writer.write(payload)


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (
            ResponseBuilder()
            .status(HTTPStatus.OK)
            .header("Etag", snapshot.fingerprint)
            .html(snapshot.html)
            .build()
        )
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: Union[str, bytes], content_type: str = "text/plain; charset=utf-8") -> "ResponseBuilder":
        return self.content_type(content_type).body(text)

    def html(self, html: Union[str, bytes]) -> "ResponseBuilder":
        return self.text(html, "text/html; charset=utf-8")

    def redirect(self, location: str, status: HTTPStatus = HTTPStatus.TEMPORARY_REDIRECT) -> "ResponseBuilder":
        """
        Redirect to location.

        307 by default: like 302, but the client must repeat the same
        method against the new location.
        """
        self._status = status
        return self.header("Location", location)

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date: "Sat, 17 Oct 2026 12:00:00 GMT".

    Always GMT, never local time; day and month names are fixed English
    regardless of locale.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# Error statuses from this server carry no body; the status code is the
# whole answer.
#
# =============================================================================

def ok(body: Union[str, bytes], content_type: str) -> HTTPResponse:
    return ResponseBuilder().text(body, content_type).build()


def redirect(location: str) -> HTTPResponse:
    """307 Temporary Redirect to location."""
    return ResponseBuilder().redirect(location).build()


def empty(status: HTTPStatus, headers: Optional[Dict[str, str]] = None) -> HTTPResponse:
    """A bodiless response with the given status."""
    return HTTPResponse(status=status, headers=dict(headers or {}))


def not_found() -> HTTPResponse:
    return empty(HTTPStatus.NOT_FOUND)


def method_not_allowed(allowed_methods: list[str]) -> HTTPResponse:
    """405 with the Allow header RFC 9110 §15.5.6 requires."""
    return empty(
        HTTPStatus.METHOD_NOT_ALLOWED,
        {"Allow": ", ".join(sorted(allowed_methods))},
    )


def internal_error() -> HTTPResponse:
    return empty(HTTPStatus.INTERNAL_SERVER_ERROR)
