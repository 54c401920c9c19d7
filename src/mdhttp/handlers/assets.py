"""
=============================================================================
ASSET HANDLERS
=============================================================================

The stylesheet and the favicon.

    GET /default.css          → 200 text/css, the local stylesheet
    GET /favicon.ico          → 307 Location: default-favicon.png
                                (or the remote favicon URL)
    GET /default-favicon.png  → 200 image/png, local or built-in favicon

Browsers ask for /favicon.ico on their own. Redirecting instead of serving
it lets a remote favicon URL work the same way as a local file, and keeps
the Location relative so the page works behind a path-prefixing proxy.

=============================================================================
"""

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok, redirect
from ..snapshot import Asset


class AssetHandler:
    """Serves one Asset's bytes with its content type."""

    def __init__(self, asset: Asset):
        self.asset = asset

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return ok(self.asset.body, self.asset.content_type)


class RedirectHandler:
    """Answers every request with 307 to a fixed location."""

    def __init__(self, location: str):
        self.location = location

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        return redirect(self.location)
