"""Immutable, point-in-time view of the inventory used for one resolution run.

A :class:`Snapshot` is built once from store rows and never changes; the
reachability graph, resolver and emitter only read it.  Records that break
an invariant the store should have enforced abort the build with
:class:`~infrabase.errors.ConfigurationError` rather than being resolved
around.
"""

from __future__ import annotations

import ipaddress
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from infrabase.errors import ConfigurationError, NotFoundError, ValidationError
from infrabase.types import NONE_NETWORK, natural_key
from infrabase.validation import (
    parse_keepalive_interval,
    parse_port,
    parse_wireguard_key,
)

logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

_TUNNEL_FIELDS = (
    "wireguard_ipv4_address",
    "wireguard_ipv6_address",
    "wireguard_port",
    "wireguard_privkey",
    "wireguard_pubkey",
)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TunnelIdentity:
    """A machine's WireGuard identity; present as a whole or not at all."""

    ipv4_address: ipaddress.IPv4Address
    ipv6_address: ipaddress.IPv6Address
    port: int
    privkey: str
    pubkey: str

    @property
    def allowed_ips(self) -> tuple[str, str]:
        return (f"{self.ipv4_address}/32", f"{self.ipv6_address}/128")


@dataclass(frozen=True)
class SshIdentity:
    port: int
    user: str


@dataclass(frozen=True)
class AddressRecord:
    """One address a machine holds on one network."""

    hostname: str
    network: str
    address: IPAddress
    ssh_port: int | None = None
    wireguard_port: int | None = None


@dataclass(frozen=True)
class LinkRecord:
    """Machines on ``from_network`` can reach addresses on ``to_network``."""

    from_network: str
    to_network: str
    priority: int


@dataclass(frozen=True)
class ProviderRecord:
    id: int
    name: str
    email: str


@dataclass(frozen=True)
class MachineRecord:
    hostname: str
    owner: str
    tunnel: TunnelIdentity | None = None
    ssh: SshIdentity | None = None
    addresses: tuple[AddressRecord, ...] = ()
    added_time: datetime | None = None
    provider_id: int | None = None
    provider_reference: str | None = None

    @property
    def networks(self) -> tuple[str, ...]:
        """Distinct networks this machine has addresses on, or ``("NONE",)``."""
        if not self.addresses:
            return (NONE_NETWORK,)
        seen: dict[str, None] = {}
        for record in self.addresses:
            seen.setdefault(record.network, None)
        return tuple(sorted(seen))


# ---------------------------------------------------------------------------
# Row conversion
# ---------------------------------------------------------------------------


def _tunnel_identity(row: Any) -> TunnelIdentity | None:
    """Build a TunnelIdentity, rejecting rows with only some fields set."""
    if row is None:
        return None
    values = {name: getattr(row, name, None) for name in _TUNNEL_FIELDS}
    missing = [name for name, value in values.items() if value is None]
    if len(missing) == len(_TUNNEL_FIELDS):
        return None
    if missing:
        raise ConfigurationError(
            f"Machine {row.hostname!r} has a partial WireGuard identity "
            f"(missing {', '.join(missing)})",
            record=row,
        )
    try:
        ipv4 = ipaddress.ip_address(str(values["wireguard_ipv4_address"]))
        ipv6 = ipaddress.ip_address(str(values["wireguard_ipv6_address"]))
        port = parse_port(values["wireguard_port"], what="WireGuard port")
        privkey = parse_wireguard_key(values["wireguard_privkey"])
        pubkey = parse_wireguard_key(values["wireguard_pubkey"])
    except (ValueError, ValidationError) as exc:
        raise ConfigurationError(
            f"Machine {row.hostname!r} has a malformed WireGuard identity: {exc}",
            record=row,
        ) from exc
    if ipv4.version != 4:
        raise ConfigurationError(
            f"Machine {row.hostname!r} WireGuard IPv4 address {ipv4} is not IPv4",
            record=row,
        )
    if ipv6.version != 6:
        raise ConfigurationError(
            f"Machine {row.hostname!r} WireGuard IPv6 address {ipv6} is not IPv6",
            record=row,
        )
    return TunnelIdentity(ipv4, ipv6, port, privkey, pubkey)


def _address_record(row: Any) -> AddressRecord:
    try:
        return AddressRecord(
            hostname=row.hostname,
            network=row.network,
            address=ipaddress.ip_address(str(row.address)),
            ssh_port=None if row.ssh_port is None else parse_port(row.ssh_port),
            wireguard_port=(
                None if row.wireguard_port is None else parse_port(row.wireguard_port)
            ),
        )
    except (ValueError, ValidationError) as exc:
        raise ConfigurationError(
            f"Malformed address row for {row.hostname!r}: {exc}", record=row
        ) from exc


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Snapshot:
    """Networks, links, machines and keepalive overrides, frozen."""

    networks: frozenset[str]
    links: tuple[LinkRecord, ...]
    machines: Mapping[str, MachineRecord]
    keepalives: Mapping[tuple[str, str], int] = field(
        default_factory=lambda: MappingProxyType({})
    )
    providers: tuple[ProviderRecord, ...] = ()

    def machine(self, hostname: str) -> MachineRecord:
        try:
            return self.machines[hostname]
        except KeyError:
            raise NotFoundError(f"Could not find machine {hostname!r} in database") from None

    def sorted_machines(self) -> list[MachineRecord]:
        """All machines in natural hostname order (``web2`` before ``web10``)."""
        return sorted(self.machines.values(), key=lambda m: natural_key(m.hostname))

    def sorted_addresses(self) -> list[AddressRecord]:
        return [a for m in self.sorted_machines() for a in m.addresses]

    def keepalive(self, source: str, target: str) -> int | None:
        return self.keepalives.get((source, target))

    @classmethod
    def from_rows(
        cls,
        *,
        networks: Iterable[Any],
        links: Iterable[Any],
        machines: Iterable[Any],
        wireguard_interfaces: Iterable[Any] = (),
        ssh_servers: Iterable[Any] = (),
        addresses: Iterable[Any] = (),
        keepalives: Iterable[Any] = (),
        providers: Iterable[Any] = (),
    ) -> Snapshot:
        """Validate store rows and freeze them into a Snapshot.

        Rows may be the SQLModel table objects or anything with the same
        attribute names.  Network rows may also be plain strings.

        Raises:
            ConfigurationError: On the first record that breaks an invariant.
        """
        network_names = frozenset(
            n if isinstance(n, str) else n.name for n in networks
        )

        link_records: dict[tuple[str, str], LinkRecord] = {}
        for row in links:
            key = (row.name, row.other_network)
            for net in key:
                if net not in network_names:
                    raise ConfigurationError(
                        f"Network link {key} references unknown network {net!r}",
                        record=row,
                    )
            if key in link_records:
                raise ConfigurationError(f"Duplicate network link {key}", record=row)
            link_records[key] = LinkRecord(row.name, row.other_network, int(row.priority))

        machine_rows = {row.hostname: row for row in machines}

        tunnels: dict[str, TunnelIdentity] = {}
        seen_keys: dict[str, str] = {}
        for row in wireguard_interfaces:
            if row.hostname not in machine_rows:
                raise ConfigurationError(
                    f"WireGuard interface for unknown machine {row.hostname!r}",
                    record=row,
                )
            tunnel = _tunnel_identity(row)
            if tunnel is None:
                continue
            for key in (tunnel.privkey, tunnel.pubkey):
                holder = seen_keys.get(key)
                if holder is not None:
                    raise ConfigurationError(
                        f"WireGuard key of {row.hostname!r} is also used by {holder!r}",
                        record=row,
                    )
                seen_keys[key] = row.hostname
            tunnels[row.hostname] = tunnel

        ssh: dict[str, SshIdentity] = {}
        for row in ssh_servers:
            if row.hostname not in machine_rows:
                raise ConfigurationError(
                    f"SSH server for unknown machine {row.hostname!r}", record=row
                )
            ssh[row.hostname] = SshIdentity(int(row.ssh_port), row.ssh_user)

        by_host: dict[str, list[AddressRecord]] = {h: [] for h in machine_rows}
        for row in addresses:
            if row.hostname not in machine_rows:
                raise ConfigurationError(
                    f"Address for unknown machine {row.hostname!r}", record=row
                )
            if row.network not in network_names:
                raise ConfigurationError(
                    f"Address of {row.hostname!r} references unknown network {row.network!r}",
                    record=row,
                )
            record = _address_record(row)
            if record.wireguard_port is not None and row.hostname not in tunnels:
                raise ConfigurationError(
                    f"Address {record.address} of {row.hostname!r} has a WireGuard "
                    "port but the machine has no WireGuard identity",
                    record=row,
                )
            by_host[row.hostname].append(record)

        machine_records = {}
        for hostname, row in machine_rows.items():
            machine_records[hostname] = MachineRecord(
                hostname=hostname,
                owner=row.owner,
                tunnel=tunnels.get(hostname),
                ssh=ssh.get(hostname),
                addresses=tuple(
                    sorted(by_host[hostname], key=lambda a: (a.network, str(a.address)))
                ),
                added_time=getattr(row, "added_time", None),
                provider_id=getattr(row, "provider_id", None),
                provider_reference=getattr(row, "provider_reference", None),
            )

        keepalive_map: dict[tuple[str, str], int] = {}
        for row in keepalives:
            for hostname in (row.source_machine, row.target_machine):
                if hostname not in machine_rows:
                    raise ConfigurationError(
                        f"Keepalive references unknown machine {hostname!r}",
                        record=row,
                    )
            try:
                interval = parse_keepalive_interval(row.interval_sec)
            except ValidationError as exc:
                raise ConfigurationError(str(exc), record=row) from exc
            keepalive_map[(row.source_machine, row.target_machine)] = interval

        provider_records = tuple(
            ProviderRecord(p.id, p.name, p.email) for p in providers
        )

        logger.debug(
            "Snapshot: %d networks, %d links, %d machines, %d keepalives",
            len(network_names), len(link_records), len(machine_records), len(keepalive_map),
        )
        return cls(
            networks=network_names,
            links=tuple(link_records.values()),
            machines=MappingProxyType(machine_records),
            keepalives=MappingProxyType(keepalive_map),
            providers=provider_records,
        )
