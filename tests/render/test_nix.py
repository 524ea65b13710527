"""Tests for Nix expression rendering."""

from __future__ import annotations

from ipaddress import ip_address

import pytest

from infrabase.render import render_nix_data, render_nix_peers, to_nix
from infrabase.topology import PeerConfigEmitter, PeerEntry
from infrabase.topology.resolver import ResolvedEndpoint


class TestToNix:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (None, "null"),
            (True, "true"),
            (51820, "51820"),
            ("alice", '"alice"'),
            (ip_address("10.0.0.2"), '"10.0.0.2"'),
            ('say "hi"', '"say \\"hi\\""'),
            ("${pkgs}", '"\\${pkgs}"'),
        ],
    )
    def test_literals(self, value, expected):
        assert to_nix(value) == expected


class TestPeers:
    def test_peer_line(self):
        peer = PeerEntry(
            hostname="carol",
            public_key="yAnz5TF+lXXJte14tji3zlMNq+hd2rYUIgJBgB3fBmk=",
            allowed_ips=("10.200.0.3/32", "fd00:200::3/128"),
            endpoint=ResolvedEndpoint(ip_address("198.51.100.4"), 51820, "internet", "homelan", 0),
            keepalive=25,
        )
        assert render_nix_peers([peer]) == (
            "[\n"
            '  { name = "carol"; allowedIPs = [ "10.200.0.3/32" "fd00:200::3/128" ]; '
            'publicKey = "yAnz5TF+lXXJte14tji3zlMNq+hd2rYUIgJBgB3fBmk="; '
            'endpoint = "198.51.100.4:51820"; persistentKeepalive = 25; }\n'
            "]\n"
        )

    def test_accept_only_peer_has_no_endpoint(self, example_snapshot):
        peers = PeerConfigEmitter(example_snapshot).emit_peers("carol", include_accept_only=True)
        text = render_nix_peers(peers)
        [bob_line] = [line for line in text.splitlines() if '"bob"' in line]
        assert "endpoint" not in bob_line
        assert "publicKey" in bob_line

    def test_empty(self):
        assert render_nix_peers([]) == "[\n]\n"


class TestNixData:
    def test_structure(self, example_snapshot):
        text = render_nix_data(example_snapshot)
        assert text.startswith("{\n")
        assert text.endswith("}\n")
        lines = text.splitlines()[1:-1]
        assert [line.split()[0] for line in lines] == ['"alice"', '"bob"', '"carol"', '"dave"']

    def test_addresses(self, example_snapshot):
        text = render_nix_data(example_snapshot)
        assert '"homelan" = [ { ip = "10.0.0.2"; ssh_port = 22; wireguard_port = null; } ];' in text
        [dave] = [line for line in text.splitlines() if line.strip().startswith('"dave"')]
        assert "addresses = { }; };" in dave
        assert "provider_id = null;" in dave

    def test_addresses_on_one_network_share_an_attribute(self, make_snapshot):
        snapshot = make_snapshot(
            hostnames=["1gw"],
            links=[("lan", "lan", 0)],
            addresses=[("1gw", "lan", "10.0.0.1"), ("1gw", "lan", "10.0.0.9")],
        )
        [line] = render_nix_data(snapshot).splitlines()[1:-1]
        assert line.lstrip().startswith('"1gw"')
        assert line.count('"lan" =') == 1
        assert '"lan" = [ { ip = "10.0.0.1";' in line
        assert '{ ip = "10.0.0.9"; ssh_port = 22; wireguard_port = null; } ];' in line
