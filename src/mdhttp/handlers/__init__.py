"""
=============================================================================
REQUEST HANDLERS
=============================================================================

The fixed route table of the document server.

    ┌──────────────────────┬────────┬──────────────────────────────────────┐
    │ Path                 │ Method │ Handler                              │
    ├──────────────────────┼────────┼──────────────────────────────────────┤
    │ /                    │ GET    │ DocumentHandler (conditional GET)    │
    │ /healthz             │ GET    │ healthz                              │
    │ /default.css         │ GET    │ AssetHandler (local stylesheet only) │
    │ /favicon.ico         │ GET    │ RedirectHandler (307)                │
    │ /default-favicon.png │ GET    │ AssetHandler                         │
    └──────────────────────┴────────┴──────────────────────────────────────┘

Anything else is 404; a listed path with another method is 405.

=============================================================================
"""

from ..config import ServerConfig
from ..content import AssetRef
from ..http.router import Router
from ..snapshot import Snapshot, FAVICON_ROUTE, STYLESHEET_ROUTE
from .assets import AssetHandler, RedirectHandler
from .document import DocumentHandler
from .health import healthz


def favicon_location(config: ServerConfig) -> str:
    """Where /favicon.ico redirects: the remote favicon URL, else the local asset."""
    ref = AssetRef.parse(config.favicon_url)
    if ref is not None and ref.is_remote:
        return ref.url
    return FAVICON_ROUTE.lstrip("/")


def build_router(snapshot: Snapshot, config: ServerConfig) -> Router:
    """
    Build the route table for one server instance.

    Every handler reads only from snapshot and config, both immutable for
    the life of the server.
    """
    router = Router()
    router.add_route("/", DocumentHandler(snapshot), name="document")
    router.add_route("/healthz", healthz, name="healthz")

    stylesheet = snapshot.asset(STYLESHEET_ROUTE)
    if stylesheet is not None:
        router.add_route(STYLESHEET_ROUTE, AssetHandler(stylesheet), name="stylesheet")

    router.add_route("/favicon.ico", RedirectHandler(favicon_location(config)), name="favicon")

    favicon = snapshot.asset(FAVICON_ROUTE)
    if favicon is not None:
        router.add_route(FAVICON_ROUTE, AssetHandler(favicon), name="favicon_asset")

    return router


__all__ = [
    "build_router",
    "favicon_location",
    "DocumentHandler",
    "AssetHandler",
    "RedirectHandler",
    "healthz",
]
