"""Tests for infrabase.addressing tunnel address allocation."""

from __future__ import annotations

from ipaddress import IPv4Address, IPv6Address

from infrabase.addressing import (
    increment_ipv4_address,
    increment_ipv6_address,
    next_unused_ipv4,
    next_unused_ipv6,
)


class TestIncrement:
    def test_ipv4(self):
        assert increment_ipv4_address(IPv4Address("10.0.0.255")) == IPv4Address("10.0.1.0")

    def test_ipv4_all_ones(self):
        assert increment_ipv4_address(IPv4Address("255.255.255.255")) is None

    def test_ipv6(self):
        assert increment_ipv6_address(IPv6Address("fd00::ffff")) == IPv6Address("fd00::1:0")

    def test_ipv6_all_ones(self):
        assert increment_ipv6_address(IPv6Address("ffff:" * 7 + "ffff")) is None


class TestNextUnused:
    def test_empty_pool_returns_start(self):
        start, end = IPv4Address("10.200.0.1"), IPv4Address("10.200.0.10")
        assert next_unused_ipv4([], start, end) == start

    def test_skips_used(self):
        start, end = IPv4Address("10.200.0.1"), IPv4Address("10.200.0.10")
        used = [IPv4Address("10.200.0.1"), IPv4Address("10.200.0.2"), IPv4Address("10.200.0.4")]
        assert next_unused_ipv4(used, start, end) == IPv4Address("10.200.0.3")

    def test_end_is_inclusive(self):
        start, end = IPv4Address("10.200.0.1"), IPv4Address("10.200.0.2")
        assert next_unused_ipv4([start], start, end) == end

    def test_exhausted(self):
        start, end = IPv4Address("10.200.0.1"), IPv4Address("10.200.0.2")
        assert next_unused_ipv4([start, end], start, end) is None

    def test_exhausted_at_top_of_space(self):
        top = IPv4Address("255.255.255.255")
        assert next_unused_ipv4([top], top, top) is None

    def test_ipv6(self):
        start, end = IPv6Address("fd00::1"), IPv6Address("fd00::ff")
        assert next_unused_ipv6([IPv6Address("fd00::1")], start, end) == IPv6Address("fd00::2")
