"""Endpoint resolution: which address and port should a machine dial?

For an ordered pair (initiator, target), every combination of an initiator
network and a target address is looked up in the reachability graph.
Survivors are ranked by link priority (lower wins), then by target network
name, then by the address's text form, so the choice is the same on every
run over the same snapshot.

Resolution is not symmetric: ``resolve(a, b)`` and ``resolve(b, a)`` use
different initiator networks and may differ, or one may be unreachable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Final

from infrabase.topology.graph import ReachabilityGraph
from infrabase.topology.snapshot import (
    AddressRecord,
    IPAddress,
    MachineRecord,
    Snapshot,
)

logger = logging.getLogger(__name__)


class Unreachable:
    """No link connects any initiator network to any target address.

    A valid outcome, not an error.  Use the :data:`UNREACHABLE` singleton.
    """

    _instance: Unreachable | None = None

    def __new__(cls) -> Unreachable:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNREACHABLE"


UNREACHABLE: Final = Unreachable()


def _format_hostport(address: IPAddress, port: int) -> str:
    if address.version == 6:
        return f"[{address}]:{port}"
    return f"{address}:{port}"


@dataclass(frozen=True)
class ResolvedEndpoint:
    """The address and port an initiator dials to reach a target's tunnel."""

    address: IPAddress
    port: int
    network: str
    via: str
    priority: int

    def __str__(self) -> str:
        return _format_hostport(self.address, self.port)


@dataclass(frozen=True)
class SshEndpoint:
    address: IPAddress
    port: int


@dataclass(frozen=True, order=True)
class Candidate:
    """A reachable (initiator network, target address) pair.

    Field order is the ranking order.
    """

    priority: int
    network: str
    address_text: str
    via: str
    record: AddressRecord = field(compare=False)


def rank_candidates(
    graph: ReachabilityGraph, initiator: MachineRecord, target: MachineRecord
) -> list[Candidate]:
    """All reachable target addresses, best first.

    An address reachable from several initiator networks keeps only its best
    link.  A target with no addresses has no candidates: it can dial out but
    nobody can dial it.
    """
    best: dict[tuple[str, str], Candidate] = {}
    for via in initiator.networks:
        for record in target.addresses:
            priority = graph.priority_of(via, record.network)
            if priority is None:
                continue
            candidate = Candidate(priority, record.network, str(record.address), via, record)
            key = (record.network, candidate.address_text)
            if key not in best or candidate < best[key]:
                best[key] = candidate
    return sorted(best.values())


class EndpointResolver:
    """Resolves tunnel and SSH endpoints over one snapshot.

    Pure and side-effect free; safe to share read-only between threads
    that resolve over the same snapshot.
    """

    def __init__(self, snapshot: Snapshot, graph: ReachabilityGraph | None = None) -> None:
        self.snapshot = snapshot
        self.graph = graph or ReachabilityGraph.from_snapshot(snapshot)

    def _machine(self, machine: MachineRecord | str) -> MachineRecord:
        if isinstance(machine, str):
            return self.snapshot.machine(machine)
        return machine

    def resolve(
        self, initiator: MachineRecord | str, target: MachineRecord | str
    ) -> ResolvedEndpoint | Unreachable:
        """Pick the endpoint *initiator* should dial for *target*'s tunnel.

        The port is the winning address's own WireGuard port (a port forward
        on a shared NAT address), falling back to the target's listen port.
        """
        initiator = self._machine(initiator)
        target = self._machine(target)
        if target.tunnel is None:
            return UNREACHABLE

        candidates = rank_candidates(self.graph, initiator, target)
        if not candidates:
            logger.debug("%s -> %s: unreachable", initiator.hostname, target.hostname)
            return UNREACHABLE

        winner = candidates[0]
        port = winner.record.wireguard_port
        if port is None:
            port = target.tunnel.port
        endpoint = ResolvedEndpoint(
            address=winner.record.address,
            port=port,
            network=winner.network,
            via=winner.via,
            priority=winner.priority,
        )
        logger.debug(
            "%s -> %s: %s via (%s, %s, %d)",
            initiator.hostname, target.hostname, endpoint,
            winner.via, winner.network, winner.priority,
        )
        return endpoint

    def resolve_ssh(
        self, initiator: MachineRecord | str, target: MachineRecord | str
    ) -> SshEndpoint | None:
        """Pick the address and port *initiator* should SSH to.

        The non-WireGuard address is preferred so SSH keeps working when the
        tunnel is down.  With no reachable address the target's WireGuard
        IPv4 address is used instead.  Returns None when there is no address
        or no port to use.
        """
        initiator = self._machine(initiator)
        target = self._machine(target)
        ssh_server_port = target.ssh.port if target.ssh else None

        candidates = rank_candidates(self.graph, initiator, target)
        if candidates:
            record = candidates[0].record
            address: IPAddress | None = record.address
            port = record.ssh_port if record.ssh_port is not None else ssh_server_port
        else:
            address = target.tunnel.ipv4_address if target.tunnel else None
            port = ssh_server_port

        if address is None or port is None:
            return None
        return SshEndpoint(address, port)
