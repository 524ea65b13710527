"""Per-machine WireGuard peer lists.

For a machine with a tunnel identity, every other tunnel machine is resolved
and turned into a :class:`PeerEntry`.  Output is sorted by natural hostname
order so regenerated configuration is byte-stable across runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from infrabase.topology.resolver import EndpointResolver, ResolvedEndpoint, Unreachable
from infrabase.topology.snapshot import MachineRecord, Snapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeerEntry:
    """One ``[Peer]`` of a machine's tunnel configuration.

    ``endpoint`` is None only for accept-only peers, which the local daemon
    cannot dial but must know so it accepts their handshakes.
    """

    hostname: str
    public_key: str
    allowed_ips: tuple[str, ...]
    endpoint: ResolvedEndpoint | None
    keepalive: int | None = None

    @property
    def dialable(self) -> bool:
        return self.endpoint is not None


class PeerConfigEmitter:
    """Fans the resolver out over all peers of a machine."""

    def __init__(self, snapshot: Snapshot, resolver: EndpointResolver | None = None) -> None:
        self.snapshot = snapshot
        self.resolver = resolver or EndpointResolver(snapshot)

    def _machine(self, machine: MachineRecord | str) -> MachineRecord:
        if isinstance(machine, str):
            return self.snapshot.machine(machine)
        return machine

    def _peer_machines(self, me: MachineRecord) -> list[MachineRecord]:
        return [
            m for m in self.snapshot.sorted_machines()
            if m.hostname != me.hostname and m.tunnel is not None
        ]

    def emit_peers(
        self,
        machine: MachineRecord | str,
        *,
        include_accept_only: bool = False,
        warn_unreachable: bool = True,
    ) -> list[PeerEntry]:
        """Peer entries for *machine*, sorted by peer hostname.

        Unreachable peers are omitted and logged as warnings, unless
        *include_accept_only* is set, in which case they are listed without
        an endpoint.  Callers that report unreachable peers themselves pass
        *warn_unreachable=False*, which logs them at debug level instead.
        A machine without a tunnel identity has no peers.
        """
        me = self._machine(machine)
        if me.tunnel is None:
            logger.debug("%s has no WireGuard identity; no peers", me.hostname)
            return []

        peers = []
        for other in self._peer_machines(me):
            result = self.resolver.resolve(me, other)
            if isinstance(result, Unreachable):
                logger.log(
                    logging.WARNING if warn_unreachable else logging.DEBUG,
                    "%s cannot reach %s on any network; %s",
                    me.hostname,
                    other.hostname,
                    "listing it as accept-only" if include_accept_only else "omitting peer",
                )
                if not include_accept_only:
                    continue
                endpoint = None
            else:
                endpoint = result
            peers.append(
                PeerEntry(
                    hostname=other.hostname,
                    public_key=other.tunnel.pubkey,
                    allowed_ips=other.tunnel.allowed_ips,
                    endpoint=endpoint,
                    keepalive=self.snapshot.keepalive(me.hostname, other.hostname),
                )
            )
        return peers

    def unreachable_peers(self, machine: MachineRecord | str) -> list[str]:
        """Hostnames of tunnel peers *machine* cannot dial, in peer order."""
        me = self._machine(machine)
        if me.tunnel is None:
            return []
        return [
            other.hostname
            for other in self._peer_machines(me)
            if isinstance(self.resolver.resolve(me, other), Unreachable)
        ]

    def emit_all(self, *, include_accept_only: bool = False) -> dict[str, list[PeerEntry]]:
        """Peer lists for every tunnel machine, keyed by hostname in natural order."""
        return {
            m.hostname: self.emit_peers(m, include_accept_only=include_accept_only)
            for m in self.snapshot.sorted_machines()
            if m.tunnel is not None
        }
