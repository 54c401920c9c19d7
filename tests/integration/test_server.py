"""
Integration tests: a real server on a local port, driven with http.client.
"""

import logging
import socket
import threading
import time

import pytest

from mdhttp import HTTPServer, ServerClosed, ServerConfig, ServerState, create_server, run
from mdhttp.content import DEFAULT_FAVICON, ContentLoadError
from mdhttp.http import Router, ok
from mdhttp.snapshot import fingerprint


class TestDocument:
    """GET / and its conditional variants."""

    def test_get_document(self, live_server):
        response, body = live_server.request("GET", "/")

        assert response.status == 200
        assert response.getheader("Content-Type") == "text/html; charset=utf-8"
        assert response.getheader("Content-Length") == str(len(body))
        assert response.getheader("Etag") == fingerprint(body)
        assert b'<h1 id="example-header">example header</h1>' in body
        assert b"<title>Landing page</title>" in body

    def test_custom_title(self, serve_document):
        server = serve_document(title="Docs")
        _, body = server.request("GET", "/")

        assert b"<title>Docs</title>" in body

    def test_query_string_ignored(self, live_server):
        response, _ = live_server.request("GET", "/?utm_source=test")
        assert response.status == 200

    def test_etag_stable(self, live_server):
        first, _ = live_server.request("GET", "/")
        second, _ = live_server.request("GET", "/")

        assert first.getheader("Etag") == second.getheader("Etag")

    def test_if_none_match(self, live_server):
        etag = live_server.request("GET", "/")[0].getheader("Etag")

        response, body = live_server.request("GET", "/", {"If-None-Match": etag})

        assert response.status == 304
        assert body == b""
        assert response.getheader("Content-Type") is None
        assert response.getheader("Content-Length") is None

    def test_repeated_if_none_match_uses_first(self, live_server):
        etag = live_server.request("GET", "/")[0].getheader("Etag")

        raw = live_server.raw(
            b"GET / HTTP/1.1\r\n"
            b"If-None-Match: " + etag.encode() + b"\r\n"
            b"If-None-Match: other\r\n"
            b"Connection: close\r\n"
            b"\r\n"
        )

        assert raw.startswith(b"HTTP/1.1 304 Not Modified\r\n")

    def test_if_match_mismatch(self, live_server):
        response, body = live_server.request("GET", "/", {"If-Match": "stale"})

        assert response.status == 412
        assert body == b""

    def test_if_match_wins(self, live_server):
        etag = live_server.request("GET", "/")[0].getheader("Etag")

        response, _ = live_server.request("GET", "/", {"If-Match": "stale", "If-None-Match": etag})

        assert response.status == 412

    def test_if_match_hit(self, live_server):
        etag = live_server.request("GET", "/")[0].getheader("Etag")

        response, body = live_server.request("GET", "/", {"If-Match": etag})

        assert response.status == 200
        assert fingerprint(body) == etag


class TestAuxiliaryRoutes:

    def test_healthz(self, live_server):
        response, body = live_server.request("GET", "/healthz")

        assert response.status == 200
        assert response.getheader("Content-Type") == "text/plain; charset=utf-8"
        assert body == b"healthz check passed"

    def test_favicon_redirect(self, live_server):
        response, _ = live_server.request("GET", "/favicon.ico")

        assert response.status == 307
        assert response.getheader("Location") == "default-favicon.png"

    def test_default_favicon(self, live_server):
        response, body = live_server.request("GET", "/default-favicon.png")

        assert response.status == 200
        assert response.getheader("Content-Type") == "image/png"
        assert body == DEFAULT_FAVICON

    def test_local_favicon(self, serve_document, tmp_path):
        icon = tmp_path / "icon.png"
        icon.write_bytes(b"\x89PNG\r\n\x1a\nlocal-icon")
        server = serve_document(favicon_url=str(icon))

        redirect, _ = server.request("GET", "/favicon.ico")
        response, body = server.request("GET", "/" + redirect.getheader("Location"))

        assert redirect.status == 307
        assert redirect.getheader("Location") == "default-favicon.png"
        assert response.status == 200
        assert response.getheader("Content-Type") == "image/png"
        assert body == icon.read_bytes()

    def test_remote_favicon_redirect(self, serve_document):
        server = serve_document(favicon_url="https://cdn.example/icon.png")
        response, _ = server.request("GET", "/favicon.ico")

        assert response.getheader("Location") == "https://cdn.example/icon.png"

    def test_local_stylesheet(self, serve_document, css_file):
        server = serve_document(css_url=f"file://{css_file}")

        response, body = server.request("GET", "/default.css")
        _, page = server.request("GET", "/")

        assert response.status == 200
        assert response.getheader("Content-Type") == "text/css; charset=utf-8"
        assert body == css_file.read_bytes()
        assert b'href="default.css"' in page

    def test_remote_stylesheet(self, serve_document):
        server = serve_document(css_url="https://cdn.example/theme.css")

        response, _ = server.request("GET", "/default.css")
        _, page = server.request("GET", "/")

        assert response.status == 404
        assert b'href="https://cdn.example/theme.css"' in page

    def test_no_stylesheet(self, live_server):
        response, _ = live_server.request("GET", "/default.css")
        assert response.status == 404


class TestErrors:

    @pytest.mark.parametrize("path", [
        "/missing", "/index.html", "/healthz/", "/a..b", "/notes..md", "//healthz",
    ])
    def test_not_found(self, live_server, path):
        response, body = live_server.request("GET", path)

        assert response.status == 404
        assert body == b""

    @pytest.mark.parametrize("method", ["POST", "PUT", "DELETE"])
    def test_method_not_allowed(self, live_server, method):
        response, body = live_server.request(method, "/")

        assert response.status == 405
        assert response.getheader("Allow") == "GET"
        assert body == b""

    def test_head_not_allowed(self, live_server):
        response, _ = live_server.request("HEAD", "/")
        assert response.status == 405

    def test_malformed_request(self, live_server):
        raw = live_server.raw(b"NOT A REQUEST\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 400 Bad Request\r\n")
        assert b"Connection: close\r\n" in raw

    def test_unsupported_version(self, live_server):
        raw = live_server.raw(b"GET / HTTP/2.0\r\n\r\n")
        assert raw.startswith(b"HTTP/1.1 505 ")

    def test_request_too_large(self, serve_document):
        server = serve_document(max_request_size=2048)
        raw = server.raw(b"GET / HTTP/1.1\r\nX-Big: " + b"a" * 4096 + b"\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 413 ")


class TestConnections:

    def test_keep_alive(self, live_server):
        conn = live_server.connect()
        try:
            for path in ("/", "/healthz", "/"):
                conn.request("GET", path)
                response = conn.getresponse()
                response.read()

                assert response.status == 200
                assert response.getheader("Connection") == "keep-alive"
        finally:
            conn.close()

    def test_connection_close(self, live_server):
        response, _ = live_server.request("GET", "/healthz", {"Connection": "close"})
        assert response.getheader("Connection") == "close"

    def test_http_10_closes(self, live_server):
        raw = live_server.raw(b"GET /healthz HTTP/1.0\r\n\r\n")

        assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Connection: close\r\n" in raw
        assert raw.endswith(b"healthz check passed")

    def test_concurrent_clients(self, live_server):
        statuses = []
        lock = threading.Lock()

        def fetch():
            response, _ = live_server.request("GET", "/")
            with lock:
                statuses.append(response.status)

        threads = [threading.Thread(target=fetch) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10.0)

        assert statuses == [200] * 10


class TestAccessLog:

    def test_one_event_per_request(self, serve_document, caplog):
        caplog.set_level(logging.INFO, logger="mdhttp")
        server = serve_document()

        server.request("GET", "/?x=1")
        server.request("GET", "/missing")
        etag = server.request("GET", "/")[0].getheader("Etag")
        server.request("GET", "/", {"If-None-Match": etag})
        server.stop()

        events = [
            (r.method, r.uri, r.status, r.bytes)
            for r in caplog.records
            if r.name == "mdhttp.access"
        ]
        page_size = len(server.server.router.match("GET", "/").handler.snapshot.html)

        assert sorted(events) == sorted([
            ("GET", "/?x=1", 200, page_size),
            ("GET", "/missing", 404, 0),
            ("GET", "/", 200, page_size),
            ("GET", "/", 304, 0),
        ])

    def test_unrouted_paths_are_logged(self, serve_document, caplog):
        caplog.set_level(logging.INFO, logger="mdhttp")
        server = serve_document()

        server.request("GET", "/a..b")
        server.request("GET", "//healthz")
        server.stop()

        events = [(r.uri, r.status) for r in caplog.records if r.name == "mdhttp.access"]
        assert sorted(events) == [("//healthz", 404), ("/a..b", 404)]

    def test_startup_log(self, serve_document, caplog):
        caplog.set_level(logging.INFO, logger="mdhttp")
        server = serve_document()

        record = next(r for r in caplog.records if r.getMessage() == "Starting http server")
        assert record.listen == f"http://127.0.0.1:{server.port}"


class TestLifecycle:
    """Start, graceful shutdown and startup failures."""

    def test_states(self, config, start_server):
        server = create_server(config)
        assert server.state == ServerState.CREATED

        background = start_server(server)
        assert server.state == ServerState.LISTENING

        background.stop()
        assert server.state == ServerState.STOPPED
        assert background.closed is True
        assert background.error is None

    def test_cancel_raises_server_closed(self, config, caplog):
        caplog.set_level(logging.INFO, logger="mdhttp")
        cancel = threading.Event()
        outcome = []

        def target():
            try:
                run(config, cancel)
            except ServerClosed as e:
                outcome.append(e)

        thread = threading.Thread(target=target)
        thread.start()
        try:
            assert _wait_for_log(caplog, "Starting http server")
        finally:
            cancel.set()
            thread.join(timeout=10.0)

        assert not thread.is_alive()
        assert len(outcome) == 1
        assert any(r.getMessage() == "Signal caught, stopping http server" for r in caplog.records)

    def test_port_closed_after_shutdown(self, serve_document):
        server = serve_document()
        host, port = server.host, server.port
        server.stop()

        with pytest.raises(OSError):
            socket.create_connection((host, port), timeout=1.0)

    def test_idle_keep_alive_closed_on_shutdown(self, serve_document):
        server = serve_document(keep_alive_timeout=30.0)
        conn = server.connect()
        conn.request("GET", "/healthz")
        conn.getresponse().read()

        stopper = threading.Thread(target=server.stop)
        stopper.start()
        stopper.join(timeout=5.0)

        assert not stopper.is_alive()
        assert server.server.state == ServerState.STOPPED
        conn.close()

    def test_in_flight_request_completes(self, config, start_server):
        release = threading.Event()
        entered = threading.Event()
        server = create_server(config)

        def slow(request):
            entered.set()
            release.wait(5.0)
            return ok("slow done", "text/plain")

        server.router.add_route("/slow", slow)
        background = start_server(server)
        result = []

        def client():
            result.append(background.request("GET", "/slow"))

        client_thread = threading.Thread(target=client)
        client_thread.start()
        assert entered.wait(5.0)

        background.cancel.set()
        assert _wait_until(lambda: server.state == ServerState.DRAINING)
        late = _attempt_request(background.host, background.port)

        release.set()
        client_thread.join(timeout=10.0)
        background.stop()

        response, body = result[0]
        assert response.status == 200
        assert response.getheader("Connection") == "close"
        assert body == b"slow done"
        assert late == b""

    def test_connections_released(self, live_server):
        response, body = live_server.request("GET", "/healthz")
        live_server.stop()

        assert response.status == 200
        assert body == b"healthz check passed"
        assert live_server.server.active_connections == 0
        assert live_server.closed is True

    def test_shutdown_idempotent(self, live_server):
        live_server.server.shutdown()
        live_server.server.shutdown()
        live_server.stop()

        assert live_server.closed is True

    def test_serve_twice(self, live_server):
        with pytest.raises(RuntimeError):
            live_server.server.serve()

    def test_bind_failure(self, config):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", 0))
            blocker.listen(1)
            port = blocker.getsockname()[1]

            server = create_server(ServerConfig(**{**vars(config), "port": port}))

            with pytest.raises(OSError):
                server.serve(threading.Event())

        assert server.state == ServerState.STOPPED

    def test_missing_document(self, config, tmp_path):
        config.document_path = str(tmp_path / "missing.md")

        with pytest.raises(ContentLoadError) as exc_info:
            run(config, threading.Event())

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    def test_explicit_router(self, config, start_server):
        router = Router()
        router.add_route("/", lambda request: ok("custom", "text/plain"))
        background = start_server(HTTPServer(config, router))

        _, body = background.request("GET", "/")
        assert body == b"custom"


def _wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def _wait_for_log(caplog, message: str, timeout: float = 5.0) -> bool:
    return _wait_until(lambda: any(r.getMessage() == message for r in caplog.records), timeout)


def _attempt_request(host: str, port: int) -> bytes:
    """Whatever a fresh connection gets back; b"" if refused or reset."""
    try:
        with socket.create_connection((host, port), timeout=3.0) as s:
            s.sendall(b"GET /healthz HTTP/1.1\r\n\r\n")
            return s.recv(1024)
    except OSError:
        return b""
