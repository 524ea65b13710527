"""infrabase -- machine inventory and WireGuard mesh configuration.

Top-level convenience re-exports::

    from infrabase import Snapshot, EndpointResolver, PeerConfigEmitter
"""

__version__ = "0.1.0"

from infrabase.topology import (  # noqa: E402
    UNREACHABLE,
    EndpointResolver,
    PeerConfigEmitter,
    PeerEntry,
    ReachabilityGraph,
    ResolvedEndpoint,
    Snapshot,
)

__all__ = [
    "__version__",
    "UNREACHABLE",
    "EndpointResolver",
    "PeerConfigEmitter",
    "PeerEntry",
    "ReachabilityGraph",
    "ResolvedEndpoint",
    "Snapshot",
]
