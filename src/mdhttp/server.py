"""
=============================================================================
MARKDOWN DOCUMENT SERVER
=============================================================================

Ties the pieces together: load → render → snapshot → router → listen.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   run(config, cancel)                                               │
    │     │                                                               │
    │     ├── read_document / load_assets      (content.py)               │
    │     ├── MarkdownRenderer.render          (render.py, once)          │
    │     ├── build_snapshot                   (snapshot.py, immutable)   │
    │     ├── build_router                     (handlers/)                │
    │     └── HTTPServer(config, router).serve(cancel)                    │
    │                    │                                                │
    │        ┌───────────┼────────────────────┐                           │
    │        ▼           ▼                    ▼                           │
    │  SocketServer   ThreadPool         shutdown watcher                 │
    │  (accept loop)  (one worker per    (waits on cancel,                │
    │        │         connection)        calls shutdown())               │
    │        ▼           │                                                │
    │   Connection ──────┘──► parse ──► Router ──► ResponseRecorder       │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LIFECYCLE
=============================================================================

    CREATED ──serve()──► LISTENING ──cancel set──► DRAINING ──► STOPPED
                 │
                 └── bind fails: OSError raised, state STOPPED

    DRAINING, in order:
      1. accept loop exits, listening socket closed
      2. later responses carry "Connection: close"
      3. idle keep-alive connections are shut down at once
      4. in-flight requests get shutdown_grace_period seconds to finish
      5. whatever is still open is then shut down
      6. worker threads stop

serve() ends a graceful run by raising ServerClosed, which callers treat as
normal termination. Anything else it raises is a real failure.

=============================================================================
"""

import logging
import threading
from enum import Enum
from typing import Optional, Tuple

from .config import ServerConfig, format_listen_address
from .content import AssetRef, read_document, load_assets, stylesheet_href
from .core import SocketServer, Connection, ThreadPool, ResponseRecorder
from .handlers import build_router
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPStatus, Router, empty, internal_error,
)
from .render import MarkdownRenderer, Renderer
from .snapshot import build_snapshot


logger = logging.getLogger(__name__)


class ServerClosed(Exception):
    """The server shut down gracefully. Not an error."""

    def __init__(self, message: str = "server closed"):
        super().__init__(message)


class ServerState(Enum):
    CREATED = "created"
    LISTENING = "listening"
    DRAINING = "draining"
    STOPPED = "stopped"


class HTTPServer:
    """
    HTTP/1.1 server for one fixed Router.

    =========================================================================
    USAGE
    =========================================================================

        server = HTTPServer(config, build_router(snapshot, config))
        cancel = threading.Event()

        try:
            server.serve(cancel)       # blocks
        except ServerClosed:
            pass                       # cancel was set, drain finished

    From another thread:

        server.wait_listening(5)
        host, port = server.address    # real port when config.port == 0
        cancel.set()

    =========================================================================
    """

    def __init__(self, config: ServerConfig, router: Router):
        self.config = config
        self.router = router

        self._parser = RequestParser(max_request_size=config.max_request_size)
        self._socket_server = SocketServer(config)
        self._thread_pool = ThreadPool(
            min_workers=config.min_workers,
            max_workers=config.max_workers,
        )

        self._state = ServerState.CREATED
        self._state_lock = threading.Lock()
        self._listening = threading.Event()
        self._stopped = threading.Event()

        # False once draining starts: no more keep-alive
        self._running = False

        self._connections: set[Connection] = set()
        self._connections_lock = threading.Lock()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening."""
        return self._socket_server.address

    def wait_listening(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is bound and listening (or the server stopped)."""
        self._listening.wait(timeout)
        return self._state in (ServerState.LISTENING, ServerState.DRAINING)

    @property
    def active_connections(self) -> int:
        with self._connections_lock:
            return len(self._connections)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def serve(self, cancel: Optional[threading.Event] = None) -> None:
        """
        Bind, then serve until shutdown() or cancel.set().

        Raises:
            ServerClosed: After a graceful shutdown completed.
            OSError: If the address cannot be bound.
            RuntimeError: If called twice.
        """
        with self._state_lock:
            if self._state != ServerState.CREATED:
                raise RuntimeError(f"serve() called on a {self._state.value} server")

        try:
            self._socket_server.bind()
        except OSError:
            self._set_state(ServerState.STOPPED)
            self._listening.set()
            self._stopped.set()
            raise

        self._thread_pool.start()
        self._running = True
        self._set_state(ServerState.LISTENING)

        if cancel is not None:
            threading.Thread(
                target=self._watch_cancel,
                args=(cancel,),
                name="shutdown-watcher",
                daemon=True,
            ).start()

        self.router.log_routes()
        logger.info("Starting http server", extra={
            "listen": "http://" + format_listen_address(*self.address),
        })
        self._listening.set()

        try:
            self._socket_server.serve_forever(self._handle_connection)
        finally:
            self._drain()
            self._stopped.set()

        raise ServerClosed()

    def _watch_cancel(self, cancel: threading.Event) -> None:
        while not self._stopped.is_set():
            if cancel.wait(0.5):
                logger.info("Signal caught, stopping http server")
                self.shutdown()
                return

    def shutdown(self) -> None:
        """
        Start a graceful shutdown. Returns at once; serve() does the drain.

        Safe to call from any thread, any number of times.
        """
        with self._state_lock:
            if self._state != ServerState.LISTENING:
                return
            self._state = ServerState.DRAINING
        self._running = False
        self._socket_server.shutdown()

    def _set_state(self, state: ServerState) -> None:
        with self._state_lock:
            self._state = state

    def _drain(self) -> None:
        """
        Close idle connections, wait for in-flight ones, stop the workers.

        Failures here are logged; the process is on its way out anyway.
        """
        self._set_state(ServerState.DRAINING)
        self._running = False
        grace = self.config.shutdown_grace_period

        try:
            for conn in self._snapshot_connections():
                conn.abort(only_if_idle=True)

            if not self._thread_pool.drain(timeout=grace):
                logger.warning("Grace period expired, closing remaining connections", extra={
                    "grace_period": grace,
                    "connections": self.active_connections,
                })
                for conn in self._snapshot_connections():
                    conn.abort()

            self._thread_pool.shutdown(wait=True, timeout=1.0)
        except Exception:
            logger.exception("Failure during shutdown")
        finally:
            self._set_state(ServerState.STOPPED)
            logger.info("Http server stopped")

    def _snapshot_connections(self) -> list[Connection]:
        with self._connections_lock:
            return list(self._connections)

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection) -> None:
        """Hand a new connection to the pool; called on the accept thread."""
        with self._connections_lock:
            self._connections.add(conn)

        if not self._thread_pool.submit(self._process_connection, args=(conn,)):
            logger.warning("Thread pool full, rejecting connection", extra={"conn": conn.id})
            self._forget(conn)
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
            conn.close()

    def _forget(self, conn: Connection) -> None:
        with self._connections_lock:
            self._connections.discard(conn)

    def _process_connection(self, conn: Connection) -> None:
        """
        Keep-alive loop for one connection (runs in a worker thread).

            read → parse → route → write → (keep alive?) → read ...
        """
        with conn:
            try:
                while True:
                    try:
                        raw_request = conn.read_request()
                    except TimeoutError:
                        self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                        break
                    except ValueError:
                        self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                        break

                    if raw_request is None:
                        break

                    try:
                        request = self._parser.parse(raw_request, conn.address)
                    except HTTPParseError as e:
                        logger.debug("malformed request", extra={"conn": conn.id, "error": str(e)})
                        self._send_error(conn, e.status_code)
                        break

                    if not self._serve_request(conn, request) or conn.broken:
                        break

                    conn.set_keep_alive()
                    # Re-check after going idle so a concurrent drain cannot miss us
                    if not self._running:
                        break
            finally:
                self._forget(conn)

    def _serve_request(self, conn: Connection, request: HTTPRequest) -> bool:
        """
        Route one request and write the response through a recorder.

        Returns:
            True if the connection should stay open for another request.
        """
        recorder = ResponseRecorder(conn)

        try:
            response = self.router.handle(request)
        except Exception:
            logger.exception("Handler failed", extra={
                "method": request.method,
                "uri": request.target,
            })
            response = internal_error()

        keep_alive = self.config.keep_alive and request.is_keep_alive and self._running
        if keep_alive:
            response.headers["Connection"] = "keep-alive"
            response.headers.setdefault("Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}")
        else:
            response.headers["Connection"] = "close"

        response.write_to(recorder, self.config.server_name)
        recorder.log(request)
        return keep_alive

    def _send_error(self, conn: Connection, status: int) -> None:
        """Bodiless error for failures before a request could be routed."""
        response = empty(status, {"Connection": "close"})
        conn.send_response(response.to_bytes(self.config.server_name))


# =============================================================================
# ENTRY POINTS
# =============================================================================

def create_server(config: ServerConfig, renderer: Optional[Renderer] = None) -> HTTPServer:
    """
    Load and render the content, and build a server ready to serve().

    Raises:
        ContentLoadError: The document or a local asset could not be read.
        RenderError: The document could not be rendered.
    """
    document = read_document(config.document_path)

    css = AssetRef.parse(config.css_url)
    favicon = AssetRef.parse(config.favicon_url)
    assets = load_assets(css, favicon)

    renderer = renderer or MarkdownRenderer()
    html = renderer.render(document, config.title, stylesheet_href(css))

    snapshot = build_snapshot(html, assets)
    logger.debug("content ready", extra={
        "bytes": snapshot.length,
        "etag": snapshot.fingerprint,
    })

    return HTTPServer(config, build_router(snapshot, config))


def run(
    config: ServerConfig,
    cancel: threading.Event,
    renderer: Optional[Renderer] = None,
) -> None:
    """
    Serve config.document_path until cancel is set.

    Raises:
        ServerClosed: On graceful shutdown (the normal way out).
        ContentLoadError, RenderError, OSError: On failure.
    """
    create_server(config, renderer).serve(cancel)
