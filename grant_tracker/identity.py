"""
Pseudo user identity.

There is no authentication: a caller without an explicit userId is
identified by a hash of client IP and User-Agent. Two clients behind one
NAT with the same browser share an id, and anyone can claim any id.
"""

import hashlib
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

USER_ID_PREFIX = "user_"
HASH_LENGTH = 12


@dataclass
class RequestInfo:
    """Request attributes identity resolution may use."""
    headers: Mapping[str, str]
    remote: Optional[str] = None


class IdentityResolver(Protocol):
    def resolve(self, request: RequestInfo) -> str:
        ...


def client_ip(request: RequestInfo) -> str:
    """
    Best-effort client address.

    Order: CF-Connecting-IP, first X-Forwarded-For hop, peer address.
    """
    ip = request.headers.get("CF-Connecting-IP")
    if ip:
        return ip.strip()

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    return request.remote or "unknown"


class HeaderHashIdentityResolver:
    """SHA-256 of client IP + User-Agent, as "user_<12 hex>"."""

    def resolve(self, request: RequestInfo) -> str:
        user_agent = request.headers.get("User-Agent", "")
        digest = hashlib.sha256(f"{client_ip(request)}|{user_agent}".encode("utf-8")).hexdigest()
        return f"{USER_ID_PREFIX}{digest[:HASH_LENGTH]}"
