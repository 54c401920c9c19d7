"""
=============================================================================
HEALTH CHECK HANDLER
=============================================================================

GET /healthz → 200 "healthz check passed"

A shallow liveness check: if a worker thread can answer it, the process is
alive. It reads nothing from the Snapshot and checks no dependencies, so it
stays cheap enough for a kubelet to poll every few seconds:

    livenessProbe:
      httpGet:
        path: /healthz
        port: 8080

=============================================================================
"""

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok


HEALTHZ_BODY = "healthz check passed"


def healthz(request: HTTPRequest) -> HTTPResponse:
    return ok(HEALTHZ_BODY, "text/plain; charset=utf-8")
