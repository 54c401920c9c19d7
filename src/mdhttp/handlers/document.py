"""
=============================================================================
DOCUMENT HANDLER
=============================================================================

Serves the rendered page at "/" with conditional-GET semantics.

=============================================================================
CONDITIONAL REQUESTS
=============================================================================

The page's ETag is the SHA-256 of its bytes. Clients send it back to ask
"only if it changed" (If-None-Match) or "only if it did NOT change"
(If-Match):

    ┌────────────────────────────────────────────────────────────────────┐
    │  If-Match present and != ETag          → 412 Precondition Failed   │
    │  else If-None-Match present and == ETag → 304 Not Modified         │
    │  else                                   → 200 + page + Etag        │
    └────────────────────────────────────────────────────────────────────┘

    - If-Match is checked first and wins when both are present.
    - An empty header counts as absent.
    - Comparison is exact string equality: no quotes stripped, no W/
      weak validators, no comma lists, no "*".

The 304 carries Content-Type and Content-Length describing the page the
client already has; the serializer drops them from the wire along with
the body.

=============================================================================
"""

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, empty
from ..http.status_codes import HTTPStatus
from ..snapshot import Snapshot


HTML_CONTENT_TYPE = "text/html; charset=utf-8"


class DocumentHandler:
    """
    Conditional-GET handler for one Snapshot.

        handler = DocumentHandler(snapshot)
        router.add_route("/", handler, method="GET", name="document")
    """

    def __init__(self, snapshot: Snapshot):
        self.snapshot = snapshot

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        etag = self.snapshot.fingerprint

        if_match = request.get_header("if-match")
        if if_match and if_match != etag:
            return empty(HTTPStatus.PRECONDITION_FAILED)

        if_none_match = request.get_header("if-none-match")
        if if_none_match and if_none_match == etag:
            return empty(HTTPStatus.NOT_MODIFIED, {
                "Content-Length": str(self.snapshot.length),
                "Content-Type": HTML_CONTENT_TYPE,
            })

        return (
            ResponseBuilder()
            .header("Etag", etag)
            .html(self.snapshot.html)
            .build()
        )
