import hashlib
import ipaddress
from typing import Optional

from fastapi import Request


def _valid_ip(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    candidate = value.strip()
    try:
        ipaddress.ip_address(candidate)
    except ValueError:
        return None
    return candidate


def client_ip(req: Request) -> Optional[str]:
    """
    Precedence:
    1) cf-connecting-ip
    2) first valid address in x-forwarded-for
    3) x-real-ip
    4) socket peer address
    """
    ip = _valid_ip(req.headers.get("cf-connecting-ip"))
    if ip:
        return ip
    for part in req.headers.get("x-forwarded-for", "").split(","):
        ip = _valid_ip(part)
        if ip:
            return ip
    ip = _valid_ip(req.headers.get("x-real-ip"))
    if ip:
        return ip
    client = getattr(req, "client", None)
    return _valid_ip(getattr(client, "host", None) if client else None)


def fingerprint(req: Request) -> str:
    raw = req.headers.get("user-agent", "") + req.headers.get("accept-language", "")
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


def resolve_identity(req: Request, user_id: Optional[str] = None) -> str:
    """
    Throttle identity for a request.

    Authenticated callers are counted per user; anonymous callers per client
    IP, falling back to a header fingerprint when no address is usable.
    """
    if user_id:
        return f"user:{user_id}"
    ip = client_ip(req)
    if ip:
        return f"ip:{ip}"
    return f"fingerprint:{fingerprint(req)}"
