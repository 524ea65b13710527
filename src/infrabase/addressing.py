"""Tunnel address allocation from a configured range."""

from __future__ import annotations

import ipaddress
from collections.abc import Iterable
from ipaddress import IPv4Address, IPv6Address


def increment_ipv4_address(ip: IPv4Address) -> IPv4Address | None:
    """Return the next IPv4 address, or None after 255.255.255.255."""
    if int(ip) == int(ipaddress.IPv4Address("255.255.255.255")):
        return None
    return ip + 1


def increment_ipv6_address(ip: IPv6Address) -> IPv6Address | None:
    """Return the next IPv6 address, or None after ffff:...:ffff."""
    if int(ip) == (1 << 128) - 1:
        return None
    return ip + 1


def _next_unused(existing, start, end, increment):
    taken = set(existing)
    ip = start
    while ip is not None:
        if ip not in taken:
            return ip
        if ip == end:
            break
        ip = increment(ip)
    return None


def next_unused_ipv4(
    existing: Iterable[IPv4Address], start: IPv4Address, end: IPv4Address
) -> IPv4Address | None:
    """First address in ``[start, end]`` not in *existing*, or None."""
    return _next_unused(existing, start, end, increment_ipv4_address)


def next_unused_ipv6(
    existing: Iterable[IPv6Address], start: IPv6Address, end: IPv6Address
) -> IPv6Address | None:
    """First address in ``[start, end]`` not in *existing*, or None."""
    return _next_unused(existing, start, end, increment_ipv6_address)
