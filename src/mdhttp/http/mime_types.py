"""
=============================================================================
MIME TYPE DETECTION
=============================================================================

Maps asset file extensions to the Content-Type header they are served with.

Only two kinds of file are ever served from disk: the stylesheet and the
favicon. The rendered page has its own fixed content type.

    ┌────────────────────────────────────────────────────────────────────┐
    │  text/css        → stylesheet   (served as text/css; charset=utf-8)│
    │  image/png       → favicon      (also the baked-in default)        │
    │  image/x-icon    → favicon                                         │
    │  image/svg+xml   → favicon                                         │
    └────────────────────────────────────────────────────────────────────┘

Text types get a charset parameter, binary types do not:

    Content-Type: text/css; charset=utf-8
    Content-Type: image/png

=============================================================================
"""

from pathlib import Path
from typing import Optional


MIME_TYPES = {
    # Text
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".txt": "text/plain",
    ".md": "text/markdown",

    # Images (favicon candidates)
    ".png": "image/png",
    ".ico": "image/x-icon",
    ".svg": "image/svg+xml",       # SVG is XML, hence +xml
    ".gif": "image/gif",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}

# application/octet-stream = "I don't know what this is, treat as binary"
DEFAULT_MIME_TYPE = "application/octet-stream"

_TEXT_TYPES = {"image/svg+xml"}


def get_mime_type(path: str | Path, default: Optional[str] = None) -> str:
    """
    Get the MIME type for a file based on its extension.

    Examples:
        >>> get_mime_type("theme.CSS")
        'text/css'
        >>> get_mime_type("/srv/icon.ico")
        'image/x-icon'
        >>> get_mime_type("favicon")
        'application/octet-stream'
    """
    extension = Path(path).suffix.lower()
    return MIME_TYPES.get(extension, default or DEFAULT_MIME_TYPE)


def is_text_type(mime_type: str) -> bool:
    return mime_type.startswith("text/") or mime_type in _TEXT_TYPES


def get_content_type(path: str | Path, charset: str = "utf-8") -> str:
    """
    Get the full Content-Type header value for a file.

        >>> get_content_type("style.css")
        'text/css; charset=utf-8'
        >>> get_content_type("favicon.png")
        'image/png'
    """
    mime_type = get_mime_type(path)
    if is_text_type(mime_type):
        return f"{mime_type}; charset={charset}"
    return mime_type
