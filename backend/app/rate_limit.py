"""Rate limiting for the dealdesk backend.

Authenticated calls are limited per user, so a buyer cannot dodge the
offer limits by switching networks. Anonymous calls (public featured
listing, scheduler) are limited per client IP. X-Forwarded-For is only
honoured when the direct peer is a trusted proxy.
"""

import ipaddress
import os
from functools import lru_cache

from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings
from .logging_config import get_logger

logger = get_logger("dealdesk.rate_limit")

# Override with TRUSTED_PROXY_CIDRS env var (comma-separated CIDRs)
_DEFAULT_TRUSTED_CIDRS = "10.0.0.0/8,172.16.0.0/12,192.168.0.0/16,127.0.0.0/8,::1/128"


@lru_cache
def trusted_networks() -> tuple:
    networks = []
    raw = os.environ.get("TRUSTED_PROXY_CIDRS") or _DEFAULT_TRUSTED_CIDRS
    for cidr in (s.strip() for s in raw.split(",")):
        if not cidr:
            continue
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr}")
    return tuple(networks)


def _from_trusted_proxy(ip_str: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in network for network in trusted_networks())


def get_client_ip(request) -> str:
    """Peer address, or the leftmost forwarded address behind a trusted proxy."""
    direct_ip = get_remote_address(request)
    if _from_trusted_proxy(direct_ip):
        forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
        if forwarded:
            return forwarded
    return direct_ip


def rate_limit_key(request) -> str:
    """``user:<id>`` for a valid bearer token, else ``ip:<address>``."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token:
        settings = get_settings()
        try:
            claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        except JWTError:
            claims = {}
        if claims.get("sub"):
            return f"user:{claims['sub']}"
    return f"ip:{get_client_ip(request)}"


def _enabled_from_env() -> bool:
    return os.environ.get("RATE_LIMIT_ENABLED", "true").lower() not in ("0", "false", "no")


limiter = Limiter(key_func=rate_limit_key, enabled=_enabled_from_env())
