"""Network-to-network reachability graph.

Keyed by network pair, not machine pair, so its size is bounded by the
number of networks squared and lookups are O(1) regardless of fleet size.
Only explicit links count: there is no transitive closure and a link
``(A, B)`` says nothing about ``(B, A)``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from infrabase.errors import ConfigurationError
from infrabase.topology.snapshot import LinkRecord, Snapshot


class ReachabilityGraph:
    """Map of ``from_network -> {to_network: priority}``.

    Lower (more negative) priority is preferred.  A missing link is the
    normal "unreachable" signal, not an error.
    """

    def __init__(self, links: Iterable[LinkRecord]) -> None:
        self._links: dict[str, dict[str, int]] = {}
        for link in links:
            targets = self._links.setdefault(link.from_network, {})
            if link.to_network in targets:
                raise ConfigurationError(
                    f"Duplicate network link ({link.from_network}, {link.to_network})",
                    record=link,
                )
            targets[link.to_network] = link.priority

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot) -> ReachabilityGraph:
        return cls(snapshot.links)

    def priority_of(self, from_network: str, to_network: str) -> int | None:
        """Priority of the ``(from_network, to_network)`` link, or None."""
        return self._links.get(from_network, {}).get(to_network)

    def can_reach(self, from_network: str, to_network: str) -> bool:
        return self.priority_of(from_network, to_network) is not None

    def links_from(self, from_network: str) -> list[tuple[str, int]]:
        """``(to_network, priority)`` pairs reachable from *from_network*, best first."""
        targets = self._links.get(from_network, {})
        return sorted(targets.items(), key=lambda item: (item[1], item[0]))

    def __contains__(self, pair: object) -> bool:
        if not isinstance(pair, tuple) or len(pair) != 2:
            return False
        return self.can_reach(*pair)

    def __iter__(self) -> Iterator[LinkRecord]:
        for from_network in sorted(self._links):
            for to_network, priority in self.links_from(from_network):
                yield LinkRecord(from_network, to_network, priority)

    def __len__(self) -> int:
        return sum(len(targets) for targets in self._links.values())
