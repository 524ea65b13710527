"""Reachability resolution engine.

Data flows one way: :class:`Snapshot` -> :class:`ReachabilityGraph` ->
:class:`EndpointResolver` (once per ordered machine pair) ->
:class:`PeerConfigEmitter` (once per machine).  Nothing writes back to the
snapshot, and nothing in here touches the network or the store except
:func:`load_snapshot`.
"""

from infrabase.topology.emitter import PeerConfigEmitter, PeerEntry
from infrabase.topology.graph import ReachabilityGraph
from infrabase.topology.loader import load_snapshot
from infrabase.topology.resolver import (
    UNREACHABLE,
    Candidate,
    EndpointResolver,
    ResolvedEndpoint,
    SshEndpoint,
    Unreachable,
    rank_candidates,
)
from infrabase.topology.snapshot import (
    AddressRecord,
    LinkRecord,
    MachineRecord,
    ProviderRecord,
    Snapshot,
    SshIdentity,
    TunnelIdentity,
)

__all__ = [
    "UNREACHABLE",
    "AddressRecord",
    "Candidate",
    "EndpointResolver",
    "LinkRecord",
    "MachineRecord",
    "PeerConfigEmitter",
    "PeerEntry",
    "ProviderRecord",
    "ReachabilityGraph",
    "ResolvedEndpoint",
    "Snapshot",
    "SshEndpoint",
    "SshIdentity",
    "TunnelIdentity",
    "Unreachable",
    "load_snapshot",
    "rank_candidates",
]
