"""
URL normalization and fingerprinting for analysis dedup.

Normalization rule:
- strip surrounding whitespace
- lowercase scheme and host
- drop the default port (80 for http, 443 for https)
- an empty path becomes "/"
- drop the fragment
- keep userinfo, path and query exactly as submitted
"""

from __future__ import annotations

import hashlib
from urllib.parse import urlsplit, urlunsplit

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    parts = urlsplit(url.strip())
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"

    port = parts.port
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{port}"

    userinfo = ""
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        userinfo = f"{userinfo}@"

    path = parts.path or "/"
    return urlunsplit((scheme, f"{userinfo}{host}", path, parts.query, ""))


def url_fingerprint(url: str) -> str:
    """Stable sha256 hex digest of the normalized URL."""
    return hashlib.sha256(normalize_url(url).encode("utf-8")).hexdigest()
