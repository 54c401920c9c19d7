"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Translates raw TCP bytes into HTTP messages and back.

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       bytes → HTTPRequest (method, target, headers)      │
    │ response.py      HTTPResponse → head bytes + payload                │
    │ router.py        (method, path) → handler, else 404/405             │
    │ status_codes.py  HTTPStatus enum, reason phrases, bodiless codes    │
    │ mime_types.py    asset extension → Content-Type                     │
    └─────────────────────────────────────────────────────────────────────┘

    CLIENT                                         SERVER
       │   GET / HTTP/1.1                             │
       │   If-None-Match: 9f86d0...                   │
       │  ─────────────────────────────────────────►  │
       │                                              │  parse → route
       │               HTTP/1.1 304 Not Modified      │
       │  ◄─────────────────────────────────────────  │
       │                                              │

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,                  # 200 OK
    redirect,            # 307 Temporary Redirect
    empty,               # any status, no body
    not_found,           # 404 Not Found
    method_not_allowed,  # 405 Method Not Allowed
    internal_error,      # 500 Internal Server Error
)
from .router import Router, Route
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Response building
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "redirect",
    "empty",
    "not_found",
    "method_not_allowed",
    "internal_error",

    # Routing
    "Router",
    "Route",

    # Status codes
    "HTTPStatus",

    # MIME types
    "get_mime_type",
    "get_content_type",
]
