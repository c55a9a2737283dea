"""Caller identity extraction."""

from starlette.requests import Request

UNKNOWN_IDENTITY = "unknown"


def client_identity(request: Request, trust_forwarded: bool = True) -> str:
    """Return the caller's address, preferring the first X-Forwarded-For hop."""
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for", "")
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_IDENTITY
