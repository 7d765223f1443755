"""
Validation for URLs submitted for analysis.
"""

from __future__ import annotations

from urllib.parse import urlsplit

from app.domain.errors import InvalidInputError

ALLOWED_SCHEMES = frozenset({"http", "https"})
MAX_URL_LENGTH = 2048


def validate_analysis_url(url: object) -> str:
    """
    Return ``url`` stripped of surrounding whitespace if it is an absolute
    http(s) URL with a host; raise InvalidInputError otherwise.
    """

    if not isinstance(url, str):
        raise InvalidInputError("URL must be a string.")

    candidate = url.strip()
    if not candidate:
        raise InvalidInputError("URL is required.")
    if len(candidate) > MAX_URL_LENGTH:
        raise InvalidInputError(f"URL exceeds {MAX_URL_LENGTH} characters.")
    if any(char.isspace() for char in candidate):
        raise InvalidInputError("Invalid URL format: URL must not contain whitespace.")

    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
        _ = parts.port
    except ValueError as exc:
        raise InvalidInputError(f"Invalid URL format: {exc}") from exc

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidInputError("Invalid URL format: only http and https URLs are supported.")
    if not hostname:
        raise InvalidInputError("Invalid URL format: URL must include a host.")

    return candidate
