"""
=============================================================================
HTTP ROUTER
=============================================================================

Dispatches requests to handlers by (method, path).

=============================================================================
EXACT MATCHING ONLY
=============================================================================

The server exposes a small fixed set of paths, so routes are plain strings
looked up in a dict. There are no path parameters, no wildcards, no
trailing-slash folding and no catch-all:

    GET /            → document handler
    GET /healthz     → health handler
    GET /index.html  → 404
    GET /healthz/    → 404
    POST /           → 405  (Allow: GET)

Each server instance builds its own Router; nothing is registered at module
level, so two servers in one process never share routes.

=============================================================================
DISPATCH
=============================================================================

    request ──► path registered? ──no──► 404 (no body)
                      │
                     yes
                      │
                method registered? ──no──► 405 (no body, Allow header)
                      │
                     yes
                      │
                      ▼
                  handler(request) ──► HTTPResponse

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, Optional, Dict, List
import logging

from .request import HTTPRequest
from .response import HTTPResponse, not_found, method_not_allowed


logger = logging.getLogger(__name__)

Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass(frozen=True)
class Route:
    """
    A registered route.

        Route(path="/healthz", method="GET", handler=healthz, name="healthz")
    """

    path: str
    method: str
    handler: Handler
    name: Optional[str] = None


class Router:
    """
    Exact-path request router.

        router = Router()

        @router.get("/healthz")
        def healthz(request):
            return ok("healthz check passed", "text/plain; charset=utf-8")

        response = router.handle(request)
    """

    def __init__(self):
        # path → method → Route
        self._table: Dict[str, Dict[str, Route]] = {}

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: str = "GET",
        name: Optional[str] = None,
    ) -> Route:
        """
        Register handler for (method, path).

        Raises:
            ValueError: If the path is not absolute or the pair is taken.
        """
        if not path.startswith("/"):
            raise ValueError(f"Route path must start with '/': {path!r}")

        method = method.upper()
        methods = self._table.setdefault(path, {})
        if method in methods:
            raise ValueError(f"Route already registered: {method} {path}")

        route = Route(path=path, method=method, handler=handler, name=name or handler.__name__)
        methods[method] = route
        return route

    def route(self, path: str, method: str = "GET", name: Optional[str] = None) -> Callable[[Handler], Handler]:
        """Decorator form of add_route()."""
        def decorator(handler: Handler) -> Handler:
            self.add_route(path, handler, method=method, name=name)
            return handler
        return decorator

    def get(self, path: str, name: Optional[str] = None) -> Callable[[Handler], Handler]:
        return self.route(path, "GET", name)

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[Route]:
        return self._table.get(path, {}).get(method.upper())

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for path, sorted; empty if path is unknown."""
        return sorted(self._table.get(path, {}))

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request to its handler.

        Handler exceptions propagate; the server turns them into a 500.
        """
        methods = self._table.get(request.path)
        if methods is None:
            return not_found()

        route = methods.get(request.method.upper())
        if route is None:
            return method_not_allowed(list(methods))

        return route.handler(request)

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def routes(self) -> List[Route]:
        """All routes, ordered by path then method."""
        return [
            self._table[path][method]
            for path in sorted(self._table)
            for method in sorted(self._table[path])
        ]

    def log_routes(self) -> None:
        """Log the route table at DEBUG level."""
        for route in self.routes():
            logger.debug("route registered", extra={
                "method": route.method,
                "path": route.path,
                "handler": route.name,
            })

    def __contains__(self, path: str) -> bool:
        return path in self._table

    def __len__(self) -> int:
        return sum(len(methods) for methods in self._table.values())
