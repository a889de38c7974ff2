from __future__ import annotations

import ipaddress
from functools import lru_cache

from fastapi import Request

USER_AGENT_MAX_LENGTH = 512

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


@lru_cache(maxsize=32)
def _parse_networks(raw_networks: str) -> tuple[IPNetwork, ...]:
    networks: list[IPNetwork] = []
    for raw_entry in raw_networks.split(","):
        entry = raw_entry.strip()
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            continue
    return tuple(networks)


def _parse_ip(value: str | None) -> str | None:
    if value is None:
        return None
    candidate = value.strip()
    if not candidate:
        return None
    try:
        return str(ipaddress.ip_address(candidate))
    except ValueError:
        return None


def is_trusted_proxy(*, proxy_ip: str | None, trusted_proxies: str) -> bool:
    if proxy_ip is None:
        return False
    parsed_ip = ipaddress.ip_address(proxy_ip)
    return any(parsed_ip in network for network in _parse_networks(trusted_proxies))


def extract_client_ip(request: Request, *, trusted_proxies: str = "") -> str | None:
    """X-Forwarded-For is honoured only when the direct peer is a trusted proxy.

    Proxies append to the header, so it is walked right to left and the first
    hop outside the trusted networks is the client. Anything left of that hop
    is client-supplied and ignored.
    """
    client_host = _parse_ip(request.client.host if request.client is not None else None)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if not forwarded_for or not is_trusted_proxy(proxy_ip=client_host, trusted_proxies=trusted_proxies):
        return client_host

    candidate = client_host
    for raw_hop in reversed(forwarded_for.split(",")):
        hop = _parse_ip(raw_hop)
        if hop is None:
            return candidate
        candidate = hop
        if not is_trusted_proxy(proxy_ip=hop, trusted_proxies=trusted_proxies):
            return hop
    return candidate


def extract_user_agent(request: Request) -> str | None:
    user_agent = request.headers.get("User-Agent", "").strip()
    return user_agent[:USER_AGENT_MAX_LENGTH] or None
