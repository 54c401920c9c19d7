"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

Owns the listening socket: create, bind, listen, accept, close.

=============================================================================
THE SOCKET LIFECYCLE
=============================================================================

    socket()  →  setsockopt()  →  bind()  →  listen()  →  accept() ...  →  close()
    └──────────────── bind() ─────────────────────────┘   └ serve_forever() ┘

bind() and serve_forever() are separate steps so a bind failure reaches the
caller before anything else starts, and so the real port is known (via
`address`) when port 0 asked the kernel for an ephemeral one.

=============================================================================
INTERRUPTIBLE ACCEPT
=============================================================================

accept() blocks. To let another thread stop the loop, the listening socket
is polled through a selector with a short interval; shutdown() only sets a
flag, and the loop notices it within poll_interval:

    while not shutdown requested:
        ready = selector.select(poll_interval)
        if ready:
            accept() → Connection → connection_handler(conn)
    close listening socket

No new connection is accepted once the loop has exited.

=============================================================================
"""

import selectors
import socket
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Low-level TCP socket server.

        server = SocketServer(config)
        server.bind()                          # raises OSError on failure
        host, port = server.address
        server.serve_forever(handle_conn)      # blocks until shutdown()

    shutdown() may be called from any thread, any number of times.
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._socket: Optional[socket.socket] = None
        self._address: Optional[Tuple[str, int]] = None

        self._shutdown_request = threading.Event()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the configured pair until bind() succeeds."""
        return self._address or (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        """
        Create and configure the listening socket.

            SO_REUSEADDR   rebind while old sockets sit in TIME_WAIT
            TCP_NODELAY    no Nagle delay on small responses
        """
        family = socket.AF_INET6 if ":" in self.config.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return sock

    def bind(self) -> Tuple[str, int]:
        """
        Bind and listen on the configured address.

        Returns:
            The bound (host, port).

        Raises:
            OSError: Address in use, permission denied, no such address.
        """
        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError:
            sock.close()
            raise

        sock.setblocking(False)
        self._socket = sock
        self._address = sock.getsockname()[:2]
        return self._address

    def serve_forever(
        self,
        connection_handler: Callable[[Connection], None],
        poll_interval: float = 0.5
    ):
        """
        Accept connections until shutdown() is called.

        Each accepted socket is wrapped in a Connection and passed to
        connection_handler on this thread; the handler must not block.
        The listening socket is closed before this returns.
        """
        if self._socket is None:
            self.bind()

        try:
            with selectors.DefaultSelector() as selector:
                selector.register(self._socket, selectors.EVENT_READ)
                while not self._shutdown_request.is_set():
                    if not selector.select(poll_interval):
                        continue
                    if self._shutdown_request.is_set():
                        break
                    self._accept(connection_handler)
        finally:
            self._cleanup()

    def _accept(self, connection_handler: Callable[[Connection], None]):
        try:
            client_socket, client_address = self._socket.accept()
        except (BlockingIOError, InterruptedError):
            return
        except OSError as e:
            # EMFILE and friends: keep serving, the backlog holds the client
            logger.error("accept failed", extra={"error": str(e)})
            return

        logger.debug("connection accepted", extra={"client": f"{client_address[0]}:{client_address[1]}"})
        conn = Connection(
            socket=client_socket,
            address=client_address,
            buffer_size=self.config.buffer_size,
            timeout=self.config.timeout,
            keep_alive_timeout=self.config.keep_alive_timeout,
            max_request_size=self.config.max_request_size,
        )
        connection_handler(conn)

    def shutdown(self):
        """Ask the accept loop to stop. Idempotent; does not wait."""
        self._shutdown_request.set()

    def _cleanup(self):
        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None
        logger.debug("listener closed")
