"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket: buffered request reading, two-phase
response writing, and the close/abort paths used by graceful shutdown.

=============================================================================
TCP IS A BYTE STREAM
=============================================================================

TCP preserves order, not message boundaries. A single request may arrive
over several recv() calls, and with pipelining one recv() may carry the
tail of one request and the head of the next:

    recv() → b"GET / HTT"
    recv() → b"P/1.1\r\nHost: x\r\n\r\nGET /healthz HTTP/1.1\r\n..."
                                      └── leftover, kept in _buffer

So bytes are buffered until \r\n\r\n, then Content-Length more bytes.

=============================================================================
STATES AND TIMEOUTS
=============================================================================

    ┌──────────┐  first byte   ┌─────────┐  request   ┌────────────┐
    │   NEW    │──────────────►│ READING │───────────►│ PROCESSING │
    └──────────┘               └─────────┘            └─────┬──────┘
         ▲ idle: timeout            read: timeout           │
         │                                                   ▼
    ┌────┴───────┐   response sent, client wants more  ┌─────────┐
    │ KEEP_ALIVE │◄────────────────────────────────────│ WRITING │
    └────────────┘                                     └─────────┘
       idle: keep_alive_timeout

    NEW / KEEP_ALIVE   no request bytes yet; the connection is IDLE and may
                       be aborted at once when the server starts draining.
    READING onwards    a request is in flight; draining waits for it.

    timeout              bounds reading a request once it has started
                         (and waiting for the first one)
    keep_alive_timeout   bounds waiting for the next request

=============================================================================
"""

import socket
import threading
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""

    NEW = "new"                # Accepted, no request bytes seen yet
    READING = "reading"        # Receiving a request
    PROCESSING = "processing"  # Request parsed, handler running
    WRITING = "writing"        # Sending the response
    KEEP_ALIVE = "keep_alive"  # Response sent, waiting for the next request
    CLOSING = "closing"
    CLOSED = "closed"


_IDLE_STATES = (ConnectionState.NEW, ConnectionState.KEEP_ALIVE)


@dataclass(eq=False)
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier for log lines.
        state: Current ConnectionState.
        requests_handled: Requests read on this connection so far.
        broken: True once a send failed; nothing more can be written.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    requests_handled: int = 0
    broken: bool = False

    buffer_size: int = 8192
    timeout: Optional[float] = 10.0
    keep_alive_timeout: float = 30.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def is_idle(self) -> bool:
        """True while no request is in flight on this connection."""
        return self.state in _IDLE_STATES and not self._buffer

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

        Returns:
            The request bytes, or None if the client closed the connection,
            sent nothing before the idle timeout, or the connection was
            aborted.

        Raises:
            TimeoutError: A request was started but not finished in time.
            ValueError: The request exceeds max_request_size.
        """
        waiting_for_next = self.requests_handled > 0

        if not self._buffer:
            # Idle wait for the first byte
            self.socket.settimeout(self.keep_alive_timeout if waiting_for_next else self.timeout)
            try:
                chunk = self._recv()
            except socket.timeout:
                logger.debug("idle timeout", extra={"conn": self.id, "requests": self.requests_handled})
                return None
            if not chunk:
                return None
            self._buffer = chunk

        with self._lock:
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return None
            self.state = ConnectionState.READING
        self.socket.settimeout(self.timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                self._check_size()
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
            self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            while len(self._buffer) - body_start < content_length:
                chunk = self._recv()
                if not chunk:
                    break  # Parser reports the short body
                self._buffer += chunk
                self._check_size()
        except socket.timeout:
            raise TimeoutError("Request read timeout") from None

        request_end = body_start + content_length
        request_data = self._buffer[:request_end]
        self._buffer = self._buffer[request_end:]

        self.requests_handled += 1
        self.state = ConnectionState.PROCESSING
        return request_data

    def _recv(self) -> bytes:
        try:
            data = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""
        except OSError:
            # Socket shut down or closed underneath us by abort()
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return b""
            raise
        return data

    def _check_size(self) -> None:
        if len(self._buffer) > self.max_request_size:
            raise ValueError(f"Request too large: {len(self._buffer)} bytes")

    @staticmethod
    def _parse_content_length(headers: bytes) -> int:
        """Content-Length from raw header bytes, 0 if absent or unparseable."""
        for line in headers.decode("latin-1").lower().split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(int(line.split(":", 1)[1].strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def write_header(self, status: int, head: bytes) -> None:
        """Send the status line and headers. status is informational here."""
        self.state = ConnectionState.WRITING
        self._send(head)

    def write(self, data: bytes) -> int:
        """Send body bytes. Returns how many were written (0 on failure)."""
        return len(data) if self._send(data) else 0

    def send_response(self, data: bytes) -> bool:
        """Send a fully serialized response in one go."""
        self.state = ConnectionState.WRITING
        return self._send(data)

    def _send(self, data: bytes) -> bool:
        if self.broken:
            return False
        try:
            self.socket.sendall(data)
        except OSError as e:
            self.broken = True
            logger.debug("send failed", extra={"conn": self.id, "error": str(e)})
            return False
        return True

    def set_keep_alive(self) -> None:
        """Mark connection idle, ready for the next request."""
        with self._lock:
            if self.state != ConnectionState.CLOSED:
                self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def abort(self, only_if_idle: bool = False) -> bool:
        """
        Shut the socket down in both directions from another thread.

        A worker blocked in recv() on this connection wakes up with EOF and
        closes it. With only_if_idle, the connection is left alone when a
        request is in flight.

        Returns:
            True if the connection was shut down.
        """
        with self._lock:
            if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
                return False
            if only_if_idle and not self.is_idle:
                return False
            self.state = ConnectionState.CLOSING
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass  # peer already gone
        return True

    def close(self) -> None:
        """
        Close gracefully: FIN, drain what the client still sends, release.

            Server                              Client
               │   FIN ────────────────────────► │   shutdown(SHUT_WR)
               │ ◄──────────────────────── FIN   │
            close()
        """
        with self._lock:
            if self.state == ConnectionState.CLOSED:
                return
            self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        with self._lock:
            self.state = ConnectionState.CLOSED
        logger.debug("connection closed", extra={
            "conn": self.id,
            "requests": self.requests_handled,
        })

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
