"""Helpers for reading client metadata from incoming requests."""
from typing import Optional

from starlette.requests import Request


def client_ip(request: Request) -> str:
    """Return the caller IP, honoring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def user_agent(request: Request) -> Optional[str]:
    return request.headers.get("user-agent")
