"""
app/api/dependencies.py

Shared FastAPI dependencies for resolving who is calling.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, status

from app.config import ClientTier, RateLimitSettings, get_rate_limit_settings


@dataclass(frozen=True)
class ClientIdentity:
    client_id: str
    tier: str
    user_agent: str | None = None


def _matches_known_key(api_key: str, known_keys: frozenset[str]) -> bool:
    return any(hmac.compare_digest(api_key, known) for known in known_keys)


def _client_address(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for", "")
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop

    real_ip = request.headers.get("x-real-ip", "").strip()
    if real_ip:
        return real_ip

    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def get_client_identity(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    rate_limit_settings: RateLimitSettings = Depends(get_rate_limit_settings),
) -> ClientIdentity:
    """
    Authenticated callers are keyed by a digest of their API key, everyone
    else by client address.
    """

    user_agent = request.headers.get("user-agent")
    api_key = (x_api_key or "").strip()
    if api_key and _matches_known_key(api_key, rate_limit_settings.api_keys):
        digest = hashlib.sha256(api_key.encode("utf-8")).hexdigest()[:16]
        return ClientIdentity(
            client_id=f"api-key:{digest}",
            tier=ClientTier.AUTHENTICATED,
            user_agent=user_agent,
        )

    return ClientIdentity(
        client_id=_client_address(request),
        tier=ClientTier.ANONYMOUS,
        user_agent=user_agent,
    )


def require_authenticated_client(
    identity: ClientIdentity = Depends(get_client_identity),
) -> ClientIdentity:
    if identity.tier != ClientTier.AUTHENTICATED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="A valid X-API-Key header is required.",
        )
    return identity
