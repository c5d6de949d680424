"""Participant identity derived from the request's network origin.

There are no accounts: whoever calls from the same address is the same
participant. Behind a reverse proxy the first ``X-Forwarded-For`` hop is
the client address.
"""
from typing import Mapping, Optional

from fastapi import Request

UNKNOWN_IDENTITY = "unknown"


def resolve_identity(
    headers: Mapping[str, str],
    client_host: Optional[str],
    trust_forwarded_for: bool = True,
) -> str:
    """Return the identity for a request.

    Args:
        headers: Request headers (case-insensitive mapping).
        client_host: Address of the peer socket, if known.
        trust_forwarded_for: Whether to honour ``X-Forwarded-For``.

    Returns:
        The client address, or ``"unknown"`` when nothing identifies it.
    """
    if trust_forwarded_for:
        forwarded = headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    if client_host:
        return client_host
    return UNKNOWN_IDENTITY


def request_identity(request: Request) -> str:
    """FastAPI dependency returning the caller's identity."""
    state = request.app.state.collector
    client_host = request.client.host if request.client else None
    return resolve_identity(
        request.headers,
        client_host,
        trust_forwarded_for=state.config.identity.trust_forwarded_for,
    )
