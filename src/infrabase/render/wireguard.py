"""wg-quick configuration and on-disk peer files."""

from __future__ import annotations

import logging
from pathlib import Path

from infrabase.errors import NotFoundError, SettingsError
from infrabase.render.nix import render_nix_peers
from infrabase.topology.emitter import PeerConfigEmitter, PeerEntry
from infrabase.topology.snapshot import MachineRecord, Snapshot

logger = logging.getLogger(__name__)

PATH_TEMPLATE_TOKENS = ("hostname", "wireguard_ipv4_address", "wireguard_ipv6_address")


def _render_peer(peer: PeerEntry) -> str:
    lines = [
        f"# {peer.hostname}",
        "[Peer]",
        f"PublicKey = {peer.public_key}",
        f"AllowedIPs = {', '.join(peer.allowed_ips)}",
    ]
    if peer.endpoint is not None:
        lines.append(f"Endpoint = {peer.endpoint}")
    if peer.keepalive is not None:
        lines.append(f"PersistentKeepalive = {peer.keepalive}")
    return "\n".join(lines) + "\n"


def render_wg_quick(
    snapshot: Snapshot, hostname: str, emitter: PeerConfigEmitter | None = None
) -> str:
    """A complete wg-quick config for *hostname*.

    Peers the machine cannot dial are still listed, without an ``Endpoint``,
    so their handshakes are accepted.

    Raises:
        NotFoundError: If the machine is missing or has no WireGuard identity.
    """
    machine = snapshot.machine(hostname)
    if machine.tunnel is None:
        raise NotFoundError(f"Machine {hostname!r} does not have a WireGuard interface")
    emitter = emitter or PeerConfigEmitter(snapshot)
    tunnel = machine.tunnel

    sections = [
        f"# infrabase-generated wg-quick config for {hostname}\n",
        "[Interface]\n"
        f"Address = {tunnel.ipv4_address}/32, {tunnel.ipv6_address}/128\n"
        f"PrivateKey = {tunnel.privkey}\n"
        f"ListenPort = {tunnel.port}\n",
    ]
    sections.extend(
        _render_peer(peer)
        for peer in emitter.emit_peers(machine, include_accept_only=True)
    )
    return "\n".join(sections)


def peers_file_path(template: str, machine: MachineRecord) -> Path:
    """Expand a peers path template for one tunnel machine.

    Raises:
        SettingsError: If the template uses an unknown or malformed token.
    """
    tunnel = machine.tunnel
    values = {
        "hostname": machine.hostname,
        "wireguard_ipv4_address": str(tunnel.ipv4_address) if tunnel else "",
        "wireguard_ipv6_address": str(tunnel.ipv6_address) if tunnel else "",
    }
    try:
        return Path(template.format(**values))
    except (KeyError, IndexError, ValueError) as exc:
        allowed = ", ".join("{" + t + "}" for t in PATH_TEMPLATE_TOKENS)
        raise SettingsError(
            f"Bad template in WIREGUARD_PEERS_PATH_TEMPLATE: {exc}; allowed tokens are {allowed}"
        ) from exc


def write_wireguard_peers(
    snapshot: Snapshot, template: str, emitter: PeerConfigEmitter | None = None
) -> list[Path]:
    """Write a Nix peer list for every tunnel machine.

    All files are rendered before any is written, so a failure leaves the
    previous set of files untouched.  Machines without a WireGuard identity
    are skipped.  Returns the written paths in hostname order.
    """
    emitter = emitter or PeerConfigEmitter(snapshot)
    rendered: list[tuple[Path, str]] = []
    for machine in snapshot.sorted_machines():
        if machine.tunnel is None:
            logger.info("Skipping %s: no WireGuard interface", machine.hostname)
            continue
        peers = emitter.emit_peers(machine, include_accept_only=True)
        rendered.append((peers_file_path(template, machine), render_nix_peers(peers)))

    for path, text in rendered:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        logger.info("Wrote %s", path)
    return [path for path, _ in rendered]
