"""Shared test fixtures for infrabase topology tests.

``make_snapshot`` builds a :class:`Snapshot` from the same SQLModel row
objects the loader reads, so tests exercise the real validation path.
"""

from __future__ import annotations

import pytest

from infrabase.crypto import generate_keypair
from infrabase.db.models import (
    Machine,
    MachineAddress,
    NetworkLink,
    SshServer,
    WireguardInterface,
    WireguardKeepalive,
)
from infrabase.topology import Snapshot

DEFAULT_WG_PORT = 51820


def tunnel_row(hostname: str, index: int, port: int = DEFAULT_WG_PORT) -> WireguardInterface:
    keypair = generate_keypair()
    return WireguardInterface(
        hostname=hostname,
        wireguard_ipv4_address=f"10.200.0.{index}",
        wireguard_ipv6_address=f"fd00:200::{index:x}",
        wireguard_port=port,
        wireguard_privkey=keypair.privkey,
        wireguard_pubkey=keypair.pubkey,
    )


def address_row(
    hostname: str,
    network: str,
    address: str,
    ssh_port: int | None = 22,
    wireguard_port: int | None = None,
) -> MachineAddress:
    return MachineAddress(
        hostname=hostname,
        network=network,
        address=address,
        ssh_port=ssh_port,
        wireguard_port=wireguard_port,
    )


@pytest.fixture
def make_snapshot():
    """Return a factory building a Snapshot from compact descriptions.

    ``links`` are ``(from, to, priority)`` triples, ``addresses`` are
    ``(hostname, network, address)`` triples or ready-made rows.  Every
    machine gets a tunnel identity unless listed in ``no_tunnel``.
    """

    def _make(
        *,
        hostnames,
        links=(),
        addresses=(),
        networks=None,
        no_tunnel=(),
        keepalives=(),
        tunnel_ports=None,
    ) -> Snapshot:
        tunnel_ports = tunnel_ports or {}
        address_rows = [
            a if isinstance(a, MachineAddress) else address_row(*a) for a in addresses
        ]
        if networks is None:
            networks = {a.network for a in address_rows}
            networks |= {n for link in links for n in link[:2]}
        return Snapshot.from_rows(
            networks=sorted(networks),
            links=[NetworkLink(name=f, other_network=t, priority=p) for f, t, p in links],
            machines=[Machine(hostname=h, owner="ops") for h in hostnames],
            wireguard_interfaces=[
                tunnel_row(h, i, tunnel_ports.get(h, DEFAULT_WG_PORT))
                for i, h in enumerate(hostnames, start=1)
                if h not in no_tunnel
            ],
            ssh_servers=[SshServer(hostname=h, ssh_port=22, ssh_user="root") for h in hostnames],
            addresses=address_rows,
            keepalives=[
                WireguardKeepalive(source_machine=s, target_machine=t, interval_sec=i)
                for s, t, i in keepalives
            ],
        )

    return _make


EXAMPLE_LINKS = [
    ("internet", "internet", 0),
    ("homelan", "homelan", -1),
    ("homelan", "internet", 0),
]

EXAMPLE_ADDRESSES = [
    ("alice", "homelan", "10.0.0.2"),
    ("alice", "internet", "203.0.113.2"),
    ("bob", "homelan", "10.0.0.3"),
    ("carol", "internet", "198.51.100.4"),
]


@pytest.fixture
def example_snapshot(make_snapshot) -> Snapshot:
    """A home LAN behind NAT plus a public host.

    alice is on both networks, bob only on the LAN, carol only on the
    internet, and dave has no addresses at all.
    """
    return make_snapshot(
        hostnames=["alice", "bob", "carol", "dave"],
        links=EXAMPLE_LINKS,
        addresses=EXAMPLE_ADDRESSES,
    )
