"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing under the HTTP layer.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         SOCKET SERVER                                │
    │  Binds the listening socket, runs the interruptible accept loop     │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ Connection per client
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          THREAD POOL                                 │
    │  Bounded workers + queue; counts in-flight tasks for draining       │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ worker owns the connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  Buffered reads, keep-alive, two-phase writes, close/abort          │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ wrapped per request
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                       RESPONSE RECORDER                              │
    │  Records status and body bytes, emits the access log event          │
    └─────────────────────────────────────────────────────────────────────┘

One worker thread per live connection: simple, and right for a server whose
every response is a lookup in memory.

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool
from .recorder import ResponseRecorder

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
    "ResponseRecorder",
]
