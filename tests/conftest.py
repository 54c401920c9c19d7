"""
pytest configuration and fixtures.
"""

import http.client
import logging
import socket
import threading
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional, Tuple

import pytest

# Add src to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mdhttp import HTTPServer, ServerConfig, ServerClosed, create_server
from mdhttp.log import LOGGER_NAME


SAMPLE_MARKDOWN = """\
# example header

Some *emphasis*, a [relative link](other.html) and https://example.com.

| a | b |
|---|---|
| 1 | 2 |
"""


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request for the document."""
    return (
        b"GET /?utm_source=pytest HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/html\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with a body."""
    body = b"title=hello"
    head = (
        b"POST / HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"Content-Type: application/x-www-form-urlencoded\r\n"
        b"Content-Length: %d\r\n"
        b"Connection: close\r\n"
        b"\r\n"
    ) % len(body)
    return head + body


@pytest.fixture
def markdown_file(tmp_path: Path) -> Path:
    """A small Markdown document on disk."""
    path = tmp_path / "README.md"
    path.write_text(SAMPLE_MARKDOWN, encoding="utf-8")
    return path


@pytest.fixture
def css_file(tmp_path: Path) -> Path:
    path = tmp_path / "theme.css"
    path.write_text("body { color: #333; }\n", encoding="utf-8")
    return path


@pytest.fixture
def config(markdown_file: Path) -> ServerConfig:
    """Default test server configuration."""
    return ServerConfig(
        document_path=str(markdown_file),
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=5.0,
        shutdown_grace_period=2.0,
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers installed by configure_logging() between tests."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_mdhttp", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)


class BackgroundServer:
    """Runs HTTPServer.serve() in a background thread."""

    def __init__(self, server: HTTPServer):
        self.server = server
        self.cancel = threading.Event()
        self.error: Optional[BaseException] = None
        self.closed = False
        self._thread: Optional[threading.Thread] = None

    def _serve(self):
        try:
            self.server.serve(self.cancel)
        except ServerClosed:
            self.closed = True
        except BaseException as e:
            self.error = e

    def start(self) -> "BackgroundServer":
        """Start server in background thread and wait until it listens."""
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

        if not self.server.wait_listening(timeout=5.0):
            self._thread.join(timeout=1.0)
            raise RuntimeError(f"Server failed to start: {self.error!r}")
        return self

    @property
    def host(self) -> str:
        return self.server.address[0]

    @property
    def port(self) -> int:
        return self.server.address[1]

    def connect(self) -> http.client.HTTPConnection:
        return http.client.HTTPConnection(self.host, self.port, timeout=5.0)

    def request(
        self,
        method: str,
        path: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> Tuple[http.client.HTTPResponse, bytes]:
        """One request on a fresh connection; returns (response, body)."""
        conn = self.connect()
        try:
            conn.request(method, path, headers=headers or {})
            response = conn.getresponse()
            body = response.read()
            return response, body
        finally:
            conn.close()

    def raw(self, data: bytes) -> bytes:
        """Send raw bytes and read until the server closes the connection."""
        with socket.create_connection((self.host, self.port), timeout=5.0) as s:
            s.sendall(data)
            chunks: List[bytes] = []
            while True:
                chunk = s.recv(4096)
                if not chunk:
                    break
                chunks.append(chunk)
        return b"".join(chunks)

    def stop(self, timeout: float = 10.0) -> None:
        """Set the cancellation event and wait for serve() to return."""
        self.cancel.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)


@pytest.fixture
def start_server() -> Generator[Callable[[HTTPServer], BackgroundServer], None, None]:
    """Factory fixture: start_server(server) serves it in the background until teardown."""
    started: List[BackgroundServer] = []

    def start(server: HTTPServer) -> BackgroundServer:
        background = BackgroundServer(server)
        started.append(background)
        return background.start()

    yield start

    for background in started:
        background.stop()


@pytest.fixture
def serve_document(config: ServerConfig, start_server) -> Callable[..., BackgroundServer]:
    """
    Factory fixture: serve_document(**overrides) starts a server for the
    sample document with config fields overridden.
    """
    def start(**overrides) -> BackgroundServer:
        values = dict(vars(config))
        values.update(overrides)
        return start_server(create_server(ServerConfig(**values)))

    return start


@pytest.fixture
def live_server(serve_document) -> BackgroundServer:
    """A running server for the sample document."""
    return serve_document()
