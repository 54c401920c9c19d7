"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Everything the server needs to know, in one validated dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest to lowest):                                     │
    │                                                                     │
    │   1. Command-line flags                                             │
    │      └── mdhttp --listen 127.0.0.1:3000 README.md                   │
    │                                                                     │
    │   2. Environment variables                                          │
    │      └── MDHTTP_listen=127.0.0.1:3000 mdhttp README.md              │
    │                                                                     │
    │   3. Default values (in this dataclass)                             │
    └─────────────────────────────────────────────────────────────────────┘

The environment variable names keep the option's lowercase spelling:
MDHTTP_listen, MDHTTP_title, MDHTTP_css, MDHTTP_favicon, MDHTTP_debug,
MDHTTP_jsonlog.

=============================================================================
"""

import ipaddress
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple


ENV_PREFIX = "MDHTTP_"

DEFAULT_LISTEN = "0.0.0.0:8080"
DEFAULT_TITLE = "Landing page"

_TRUE_VALUES = ("1", "t", "T", "TRUE", "true", "True")
_FALSE_VALUES = ("0", "f", "F", "FALSE", "false", "False")


def parse_bool(value: str) -> bool:
    """
    Parse a boolean option value.

        >>> parse_bool("true"), parse_bool("F")
        (True, False)

    Raises:
        ValueError: For anything outside 1/t/T/TRUE/true/True and
            0/f/F/FALSE/false/False.
    """
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value {value!r}")


def parse_listen_address(value: str) -> Tuple[str, int]:
    """
    Parse "ip:port" into (host, port).

    The host must be an IP literal; IPv6 goes in brackets:

        >>> parse_listen_address("0.0.0.0:8080")
        ('0.0.0.0', 8080)
        >>> parse_listen_address("[::1]:0")
        ('::1', 0)

    Raises:
        ValueError: Missing port, hostname instead of IP, port out of range.
    """
    host, sep, port_text = value.rpartition(":")
    if not sep or not host or not port_text:
        raise ValueError(f"invalid listen address {value!r}: expected ip:port")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
        try:
            ipaddress.IPv6Address(host)
        except ValueError:
            raise ValueError(f"invalid listen address {value!r}: bad IPv6 address") from None
    else:
        try:
            ipaddress.IPv4Address(host)
        except ValueError:
            raise ValueError(f"invalid listen address {value!r}: bad IPv4 address") from None

    if not port_text.isdigit():
        raise ValueError(f"invalid listen address {value!r}: bad port")
    port = int(port_text)
    if port > 65535:
        raise ValueError(f"invalid listen address {value!r}: port out of range")

    return host, port


def format_listen_address(host: str, port: int) -> str:
    """Inverse of parse_listen_address()."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@dataclass
class ServerConfig:
    """
    Configuration for the Markdown document server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    CONTENT
    - document_path, title, css_url, favicon_url

    NETWORK
    - host, port, backlog, buffer_size, timeout

    HTTP
    - keep_alive, keep_alive_timeout, max_request_size

    THREADING / LIFECYCLE
    - min_workers, max_workers, shutdown_grace_period

    LOGGING
    - debug, json_log

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    document_path: str = ""
    """Path of the Markdown file to render and serve."""

    title: str = DEFAULT_TITLE
    """The HTML <title> of the rendered page."""

    css_url: str = ""
    """
    Optional stylesheet:
    - "" - no stylesheet
    - "theme.css" or "file:///srv/theme.css" - read at startup, served at /default.css
    - "https://cdn.example/theme.css" - linked as-is, nothing served locally
    """

    favicon_url: str = ""
    """
    Optional favicon, same forms as css_url. A local file is served at
    /default-favicon.png; a remote URL is where /favicon.ico redirects.
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """IP literal to bind. "0.0.0.0" for all IPv4 interfaces, "::" for IPv6."""

    port: int = 8080
    """TCP port. 0 asks the OS for a free ephemeral port."""

    backlog: int = 128
    """Queued connections the kernel holds before refusing new ones."""

    buffer_size: int = 8192
    """recv() chunk size in bytes."""

    timeout: Optional[float] = 10.0
    """
    Read timeout in seconds: bounds receiving one request, and the wait for
    the first request on a new connection. Also bounds each send.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Serve multiple requests per TCP connection."""

    keep_alive_timeout: float = 30.0
    """Idle seconds between requests before a keep-alive connection is closed."""

    max_request_size: int = 1024 * 1024
    """Largest accepted request (headers + body) in bytes; larger gets 413."""

    # ─────────────────────────────────────────────────────────────────────
    # THREADING / LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads started up front."""

    max_workers: int = 32
    """Upper bound on worker threads, i.e. on concurrently served connections."""

    shutdown_grace_period: float = 10.0
    """Seconds in-flight requests get to finish once shutdown starts."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    debug: bool = False
    """DEBUG level logs, with source file and line."""

    json_log: bool = False
    """One JSON object per log line instead of key=value text."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "mdhttp"
    """Value of the Server response header."""

    @property
    def listen(self) -> str:
        """The bind address as "ip:port"."""
        return format_listen_address(self.host, self.port)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "ServerConfig":
        """
        Create configuration from MDHTTP_<option> environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        MDHTTP_listen   ip:port to bind          (default: 0.0.0.0:8080)
        MDHTTP_title    page title               (default: Landing page)
        MDHTTP_css      stylesheet path or URL   (default: none)
        MDHTTP_favicon  favicon path or URL      (default: none)
        MDHTTP_debug    debug logging, boolean   (default: false)
        MDHTTP_jsonlog  JSON logging, boolean    (default: false)

        =====================================================================

        Keyword overrides win over the environment.

        Raises:
            ValueError: For a malformed listen address or boolean.
        """
        env = os.environ if environ is None else environ

        def lookup(name: str) -> Optional[str]:
            return env.get(ENV_PREFIX + name)

        values = {}
        listen = lookup("listen")
        if listen is not None:
            values["host"], values["port"] = parse_listen_address(listen)
        if lookup("title") is not None:
            values["title"] = lookup("title")
        if lookup("css") is not None:
            values["css_url"] = lookup("css")
        if lookup("favicon") is not None:
            values["favicon_url"] = lookup("favicon")
        if lookup("debug") is not None:
            values["debug"] = parse_bool(lookup("debug"))
        if lookup("jsonlog") is not None:
            values["json_log"] = parse_bool(lookup("jsonlog"))

        values.update(overrides)
        return cls(**values)

    def validate(self) -> None:
        """
        Validate configuration values eagerly, before anything starts.

        Raises:
            ValueError: Describing the first invalid value.
        """
        if not self.document_path:
            raise ValueError("document_path is required")

        try:
            ipaddress.ip_address(self.host)
        except ValueError:
            raise ValueError(f"host must be an IP address, got {self.host!r}") from None

        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.keep_alive_timeout <= 0:
            raise ValueError("keep_alive_timeout must be > 0")

        if self.shutdown_grace_period < 0:
            raise ValueError("shutdown_grace_period must be >= 0")
