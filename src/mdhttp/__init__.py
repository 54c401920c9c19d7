"""
=============================================================================
MDHTTP - Serve One Markdown File as a Web Page
=============================================================================

mdhttp renders a Markdown file to HTML once at startup and serves the result
from a small HTTP/1.1 server built on raw sockets and a thread pool, with
ETag-based conditional requests, a health check and graceful shutdown.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   README.md ──► MarkdownRenderer ──► Snapshot (html + sha256 etag)  │
    │                                          │                          │
    │                                          ▼                          │
    │   client ──TCP──► SocketServer ──► ThreadPool ──► Router            │
    │                                                    │                │
    │                          /, /healthz, /default.css, /favicon.ico,   │
    │                          /default-favicon.png                       │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    mdhttp/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (mdhttp, python -m mdhttp)
    ├── server.py            # HTTPServer lifecycle, create_server(), run()
    ├── config.py            # ServerConfig dataclass, MDHTTP_* variables
    ├── log.py               # key=value / JSON log formatters
    ├── content.py           # Reading the document and local assets
    ├── render.py            # Renderer interface, Markdown implementation
    ├── snapshot.py          # Immutable rendered page + fingerprint
    ├── core/                # Low-level components
    │   ├── socket_server.py # Listening socket, accept loop
    │   ├── connection.py    # Per-client socket wrapper
    │   ├── thread_pool.py   # Worker threads with drain support
    │   └── recorder.py      # Status/bytes capture, access log
    ├── http/                # HTTP protocol components
    │   ├── request.py       # Request parsing
    │   ├── response.py      # Response building and serialization
    │   ├── router.py        # Exact-path routing, 404/405
    │   ├── status_codes.py  # HTTP status enum
    │   └── mime_types.py    # Content types for local assets
    └── handlers/            # Route handlers
        ├── document.py      # GET / with If-Match / If-None-Match
        ├── assets.py        # Stylesheet, favicon and its redirect
        └── health.py        # GET /healthz

=============================================================================
QUICK START
=============================================================================

    import threading
    from mdhttp import ServerConfig, ServerClosed, run

    config = ServerConfig(document_path="README.md", host="127.0.0.1", port=8080)
    cancel = threading.Event()     # set it from anywhere to stop

    try:
        run(config, cancel)
    except ServerClosed:
        pass

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServerConfig
from .content import ContentLoadError
from .render import Renderer, MarkdownRenderer, RenderError
from .server import HTTPServer, ServerClosed, ServerState, create_server, run

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "ServerClosed",
    "ServerState",
    "ContentLoadError",
    "Renderer",
    "MarkdownRenderer",
    "RenderError",
    "create_server",
    "run",
    "__version__",
]
