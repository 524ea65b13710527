"""Nix expression output: machine data and per-machine peer lists."""

from __future__ import annotations

import ipaddress
from typing import Any

from infrabase.render.table import format_table
from infrabase.topology.emitter import PeerEntry
from infrabase.topology.snapshot import AddressRecord, Snapshot


def to_nix(value: Any) -> str:
    """Render a Python scalar as a Nix literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
        value = str(value)
    text = str(value).replace("\\", "\\\\").replace('"', '\\"').replace("${", "\\${")
    return f'"{text}"'


def _nix_address(record: AddressRecord) -> str:
    return (
        f"{{ ip = {to_nix(record.address)}; "
        f"ssh_port = {to_nix(record.ssh_port)}; "
        f"wireguard_port = {to_nix(record.wireguard_port)}; }}"
    )


def _nix_addresses(records: tuple[AddressRecord, ...]) -> str:
    # A machine may hold several addresses on one network
    by_network: dict[str, list[str]] = {}
    for record in records:
        by_network.setdefault(record.network, []).append(_nix_address(record))
    entries = "".join(
        f"{to_nix(network)} = [ {' '.join(items)} ]; "
        for network, items in by_network.items()
    )
    return f"{{ {entries}}}"


def render_nix_data(snapshot: Snapshot) -> str:
    """All machines and their addresses as one Nix attribute set."""
    rows = []
    for machine in snapshot.sorted_machines():
        tunnel = machine.tunnel
        rows.append([
            f"  {to_nix(machine.hostname)}",
            f"= {{ owner = {to_nix(machine.owner)};",
            f"wireguard_ipv4_address = {to_nix(tunnel.ipv4_address if tunnel else None)};",
            f"wireguard_ipv6_address = {to_nix(tunnel.ipv6_address if tunnel else None)};",
            f"wireguard_port = {to_nix(tunnel.port if tunnel else None)};",
            f"ssh_port = {to_nix(machine.ssh.port if machine.ssh else None)};",
            f"provider_id = {to_nix(machine.provider_id)};",
            f"provider_reference = {to_nix(machine.provider_reference)};",
            f"addresses = {_nix_addresses(machine.addresses)}; }};",
        ])
    body = ""
    if rows:
        # Drop the header and underline that format_table always emits
        table = format_table([""] * len(rows[0]), rows, padding=1)
        body = "".join(line + "\n" for line in table.splitlines()[2:])
    return "{\n" + body + "}\n"


def _nix_peer(peer: PeerEntry) -> str:
    allowed = " ".join(to_nix(ip) for ip in peer.allowed_ips)
    parts = [
        f"name = {to_nix(peer.hostname)};",
        f"allowedIPs = [ {allowed} ];",
        f"publicKey = {to_nix(peer.public_key)};",
    ]
    if peer.endpoint is not None:
        parts.append(f"endpoint = {to_nix(str(peer.endpoint))};")
    if peer.keepalive is not None:
        parts.append(f"persistentKeepalive = {peer.keepalive};")
    return "  { " + " ".join(parts) + " }"


def render_nix_peers(peers: list[PeerEntry]) -> str:
    """A Nix list of ``networking.wireguard`` peer attribute sets."""
    return "[\n" + "".join(_nix_peer(p) + "\n" for p in peers) + "]\n"
