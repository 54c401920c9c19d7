"""
=============================================================================
CONTENT LOADING
=============================================================================

Reads the Markdown document and the optional stylesheet/favicon from disk,
once, at startup.

=============================================================================
ASSET REFERENCES
=============================================================================

The --css and --favicon options take one string that is either a URL the
browser should fetch itself, or a local file this server reads and serves:

    ┌──────────────────────────────────┬─────────┬──────────────────────────┐
    │ Value                            │ Kind    │ Served as                │
    ├──────────────────────────────────┼─────────┼──────────────────────────┤
    │ ""                               │ none    │ -                        │
    │ https://cdn.example/theme.css    │ remote  │ linked/redirected as-is  │
    │ http://intranet/theme.css        │ remote  │ linked/redirected as-is  │
    │ theme.css                        │ local   │ read, served by us       │
    │ file:///srv/theme.css            │ local   │ "file://" stripped, read │
    └──────────────────────────────────┴─────────┴──────────────────────────┘

=============================================================================
"""

import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from .http.mime_types import get_content_type
from .snapshot import Asset, FAVICON_ROUTE, STYLESHEET_ROUTE


logger = logging.getLogger(__name__)

REMOTE_PREFIXES = ("http://", "https://")
FILE_PREFIX = "file://"


class ContentLoadError(Exception):
    """
    A source file could not be read.

    The underlying OSError is chained as __cause__.
    """

    def __init__(self, what: str, path: str, reason: str):
        super().__init__(f"failed to read the {what} file {path!r}: {reason}")
        self.what = what
        self.path = path


@dataclass(frozen=True)
class AssetRef:
    """
    A classified stylesheet or favicon reference.

        AssetRef.parse("file:///srv/a.css")
        → AssetRef(value="file:///srv/a.css", is_remote=False, location="/srv/a.css")
    """

    value: str
    is_remote: bool
    location: str
    """The URL when remote, the filesystem path when local."""

    @classmethod
    def parse(cls, value: str) -> Optional["AssetRef"]:
        """Classify value; None when it is empty."""
        if not value:
            return None
        if value.startswith(REMOTE_PREFIXES):
            return cls(value=value, is_remote=True, location=value)
        path = value[len(FILE_PREFIX):] if value.startswith(FILE_PREFIX) else value
        return cls(value=value, is_remote=False, location=path)

    @property
    def url(self) -> Optional[str]:
        return self.location if self.is_remote else None

    @property
    def path(self) -> Optional[str]:
        return None if self.is_remote else self.location


def _read(what: str, path: str) -> bytes:
    logger.debug(f"reading {what} file", extra={"path": path})
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ContentLoadError(what, path, e.strerror or str(e)) from e


def read_document(path: str) -> bytes:
    """
    Read the Markdown source.

    Raises:
        ContentLoadError: Missing, unreadable, or a directory.
    """
    return _read("markdown", path)


def read_asset(ref: AssetRef, what: str = "asset") -> bytes:
    """
    Read a local asset's bytes.

    Raises:
        ValueError: If ref is remote.
        ContentLoadError: If the file cannot be read.
    """
    if ref.is_remote:
        raise ValueError(f"{what} {ref.value!r} is remote, nothing to read")
    return _read(what, ref.location)


# =============================================================================
# ASSET COLLECTION
# =============================================================================

# 1x1 transparent PNG, served when no local favicon is configured
DEFAULT_FAVICON = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


def stylesheet_href(ref: Optional[AssetRef]) -> Optional[str]:
    """
    What the page's <link rel="stylesheet"> points at.

    A local stylesheet is served next to the page, so the href is the
    relative "default.css"; a remote one is linked as-is.
    """
    if ref is None:
        return None
    if ref.is_remote:
        return ref.url
    return STYLESHEET_ROUTE.lstrip("/")


def load_assets(css: Optional[AssetRef], favicon: Optional[AssetRef]) -> Dict[str, Asset]:
    """
    Read the local assets and key them by the route that serves them.

        /default.css          only when css is local
        /default-favicon.png  local favicon bytes, else DEFAULT_FAVICON

    Raises:
        ContentLoadError: If a local file cannot be read.
    """
    assets: Dict[str, Asset] = {}

    if css is not None and not css.is_remote:
        assets[STYLESHEET_ROUTE] = Asset(
            content_type="text/css; charset=utf-8",
            body=read_asset(css, "css"),
        )

    if favicon is not None and not favicon.is_remote:
        assets[FAVICON_ROUTE] = Asset(
            content_type=get_content_type(favicon.location),
            body=read_asset(favicon, "favicon"),
        )
    else:
        assets[FAVICON_ROUTE] = Asset(content_type="image/png", body=DEFAULT_FAVICON)

    return assets
