"""Request rate limiting for the shiftpay API.

Clients are keyed by IP. ``X-Forwarded-For`` is honored only when the
direct peer is a trusted proxy, otherwise any caller could pick its own
rate-limit bucket.
"""

import ipaddress
import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from ..logging_config import get_logger

logger = get_logger("shiftpay.api.rate_limit")

# Override with SHIFTPAY_TRUSTED_PROXY_CIDRS (comma-separated)
DEFAULT_TRUSTED_PROXY_CIDRS = (
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "127.0.0.0/8",
    "::1/128",
)

_networks: list | None = None


def trusted_networks() -> list:
    """Parse the trusted proxy CIDRs once; invalid entries are logged and skipped."""
    global _networks
    if _networks is None:
        raw = os.environ.get("SHIFTPAY_TRUSTED_PROXY_CIDRS", "")
        cidrs = [c.strip() for c in raw.split(",") if c.strip()] or DEFAULT_TRUSTED_PROXY_CIDRS
        networks = []
        for cidr in cidrs:
            try:
                networks.append(ipaddress.ip_network(cidr, strict=False))
            except ValueError:
                logger.warning("Ignoring invalid trusted proxy CIDR %r", cidr)
        _networks = networks
    return _networks


def is_trusted_proxy(ip: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip)
    except ValueError:
        return False
    return any(addr in network for network in trusted_networks())


def get_client_ip(request) -> str:
    """Client IP for rate limiting: leftmost forwarded address behind a trusted proxy."""
    peer = get_remote_address(request)
    if is_trusted_proxy(peer):
        forwarded = request.headers.get("x-forwarded-for", "")
        client = forwarded.split(",")[0].strip()
        if client:
            return client
    return peer


limiter = Limiter(key_func=get_client_ip)
