"""
=============================================================================
CONTENT SNAPSHOT
=============================================================================

The rendered page plus everything derived from it, built once and never
mutated. Handlers read it concurrently without locks.

    Snapshot
    ├── html          bytes of the full page
    ├── fingerprint   sha256(html) as lowercase hex → the ETag
    ├── length        len(html)
    └── assets        route path → Asset(content_type, body)
                      "/default.css"          (only with a local stylesheet)
                      "/default-favicon.png"

The fingerprint is a pure function of the html bytes: the same document,
title and stylesheet always yield the same ETag, across restarts and
across replicas.

=============================================================================
"""

import hashlib
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Optional


# Routes the local assets are served under
STYLESHEET_ROUTE = "/default.css"
FAVICON_ROUTE = "/default-favicon.png"


@dataclass(frozen=True)
class Asset:
    """An auxiliary file served verbatim."""

    content_type: str
    body: bytes


def fingerprint(data: bytes) -> str:
    """
    Lowercase hex SHA-256 of data.

        >>> fingerprint(b"")
        'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
    """
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class Snapshot:
    html: bytes
    fingerprint: str
    length: int
    assets: Mapping[str, Asset] = field(default_factory=lambda: MappingProxyType({}))

    def asset(self, path: str) -> Optional[Asset]:
        return self.assets.get(path)


def build_snapshot(html: bytes, assets: Optional[Mapping[str, Asset]] = None) -> Snapshot:
    """Freeze html and assets into a Snapshot, computing the fingerprint."""
    return Snapshot(
        html=bytes(html),
        fingerprint=fingerprint(html),
        length=len(html),
        assets=MappingProxyType(dict(assets or {})),
    )
