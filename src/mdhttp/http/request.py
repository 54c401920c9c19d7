"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.1 request bytes into HTTPRequest objects (RFC 9112).

=============================================================================
WHAT THE DOCUMENT SERVER READS FROM A REQUEST
=============================================================================

    GET /?utm=x HTTP/1.1\r\n                 ← request line
    Host: docs.internal:8080\r\n
    If-None-Match: 9f86d081884c7d65...\r\n   ← conditional-GET validator
    \r\n

        method  = "GET"
        target  = "/?utm=x"        (raw URI, used in the access log)
        path    = "/"              (route lookup, query stripped)
        headers = {"host": ..., "if-none-match": "9f86d08..."}

Header names are normalized to lowercase at parse time, so handlers look up
"if-match" regardless of how the client spelled it. Header VALUES are left
untouched: ETag comparison is exact and case-sensitive.

=============================================================================
PARSE ERRORS
=============================================================================

    ┌─────────────────────────────┬────────┐
    │ Condition                   │ Status │
    ├─────────────────────────────┼────────┤
    │ No \r\n\r\n terminator      │  400   │
    │ Malformed request line      │  400   │
    │ Bad Content-Length          │  400   │
    │ Request over size limit     │  413   │
    │ Not HTTP/1.0 or HTTP/1.1    │  505   │
    └─────────────────────────────┴────────┘

Unknown-but-well-formed methods are NOT rejected here; the router answers
them with 404 or 405 like any other method it has no handler for.
Paths are not rejected either: "/a..b" or "//healthz" is just a path with no
route, so the router answers 404.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Optional, Dict
from urllib.parse import parse_qs, urlparse, unquote
import re


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the HTTP status code to return to the client (400, 413, 505).
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

        method:         "GET", "HEAD", ... (router matches on this)
        path:           URL-decoded path WITHOUT query string
        target:         the request URI exactly as sent ("/?a=1")
        version:        "HTTP/1.1" or "HTTP/1.0" (affects keep-alive)
        headers:        lowercase name → value
        query_params:   "?a=1&a=2" → {"a": ["1", "2"]}
        body:           raw body bytes (Content-Length worth)
        client_address: (ip, port) of the peer
    """

    method: str
    path: str
    target: str = ""
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)

    def __post_init__(self):
        if not self.target:
            self.target = self.path

    @property
    def content_length(self) -> int:
        """Content-Length as an integer, 0 when missing or invalid."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def host(self) -> str:
        return self.headers.get("host", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the client wants the connection kept open.

            HTTP/1.1: keep alive unless "Connection: close"
            HTTP/1.0: close unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        Raw bytes
            │
            ▼
        1. Size check ───────────── too large?        → 413
        2. Find \\r\\n\\r\\n ──────── missing?          → 400
        3. Request line ─────────── METHOD SP URI SP VERSION
        4. Headers ──────────────── "Name: Value", lowercased names
        5. Body ─────────────────── exactly Content-Length bytes
            │
            ▼
        HTTPRequest
    """

    # token chars per RFC 9110, not just A-Z
    REQUEST_LINE_PATTERN = re.compile(r"^([!#$%&'*+\-.^_`|~0-9A-Za-z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:\s]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    FIRST_VALUE_HEADERS = frozenset({"if-match", "if-none-match"})

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        # Header section is ISO-8859-1 on the wire; never fails to decode
        header_section = data[:header_end].decode("latin-1")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, target, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        content_length = self._content_length(headers)
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            target=target,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str):
        """
        Parse "METHOD SP REQUEST-URI SP HTTP-VERSION".

        Returns:
            (method, target, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, target, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        if target.startswith("/"):
            # origin-form: "//healthz" is a path, not a host
            raw_path, _, query = target.partition("?")
        else:
            parsed = urlparse(target)
            raw_path, query = parsed.path, parsed.query

        path = unquote(raw_path) or "/"
        query_params = parse_qs(query, keep_blank_values=True)

        return method, target, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a lowercase-keyed dict.

        Repeated headers are joined with ", " (RFC 9110 §5.3), except the
        conditional headers, where only the first line counts. Obsolete
        line folding (leading whitespace) continues the previous header.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                raise HTTPParseError(f"Malformed header line: {line!r}")

            name, value = match.groups()
            name = name.lower()
            value = value.strip()
            current_name = name

            if name in headers and name in self.FIRST_VALUE_HEADERS:
                current_name = None
            elif name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    @staticmethod
    def _content_length(headers: Dict[str, str]) -> int:
        raw = headers.get("content-length")
        if raw is None:
            return 0
        try:
            length = int(raw)
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}") from None
        if length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {raw!r}")
        return length


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 1024 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
