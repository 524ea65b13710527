"""CRUD operations for MachineAddress entities.

Every function takes ``session: AsyncSession`` as its first parameter.
"""

from __future__ import annotations

import ipaddress
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from infrabase.db.models import Machine, MachineAddress, Network, WireguardInterface
from infrabase.errors import ConflictError, NotFoundError, PortConflictError, ValidationError
from infrabase.validation import parse_network_name, parse_port

logger = logging.getLogger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address


def _normalize_address(address: IPAddress | str) -> str:
    try:
        return str(ipaddress.ip_address(str(address)))
    except ValueError:
        raise ValidationError(f"Invalid IP address: {address!r}") from None


async def _used_ports(session: AsyncSession, address: str) -> dict[int, str]:
    """Map each port already bound on *address* to a description of its user."""
    stmt = select(MachineAddress).where(MachineAddress.address == address)
    result = await session.execute(stmt)
    used: dict[int, str] = {}
    for row in result.scalars().all():
        if row.ssh_port is not None:
            used[row.ssh_port] = f"SSH on {row.hostname}"
        if row.wireguard_port is not None:
            used[row.wireguard_port] = f"WireGuard on {row.hostname}"
    return used


async def add_address(
    session: AsyncSession,
    hostname: str,
    network: str,
    address: IPAddress | str,
    ssh_port: int | None = None,
    wireguard_port: int | None = None,
) -> MachineAddress:
    """Record that *hostname* holds *address* on *network*.

    Each port must be unique across the whole address: a port already used by
    any service of any machine on the same address is rejected, and SSH and
    WireGuard may not share a port.

    Raises:
        NotFoundError: If the machine or network does not exist.
        PortConflictError: If a port is already taken on *address*.
        ConflictError: If the (hostname, network, address) row exists, or a
            WireGuard port is given for a machine without a WireGuard interface.
    """
    address = _normalize_address(address)
    network = parse_network_name(network)
    if ssh_port is not None:
        ssh_port = parse_port(ssh_port, what="SSH port")
    if wireguard_port is not None:
        wireguard_port = parse_port(wireguard_port, what="WireGuard port")

    if await session.get(Machine, hostname) is None:
        raise NotFoundError(f"Could not find machine {hostname!r} in database")
    if await session.get(Network, network) is None:
        raise NotFoundError(f"Could not find network {network!r} in database")
    if await session.get(MachineAddress, (hostname, network, address)) is not None:
        raise ConflictError(
            f"Address ({hostname!r}, {network!r}, {address!r}) already exists"
        )
    if wireguard_port is not None and await session.get(WireguardInterface, hostname) is None:
        raise ConflictError(
            f"Machine {hostname!r} has no WireGuard interface; "
            "an address WireGuard port would be meaningless"
        )
    if ssh_port is not None and ssh_port == wireguard_port:
        raise PortConflictError(
            f"SSH and WireGuard cannot share port {ssh_port} on {address}"
        )

    used = await _used_ports(session, address)
    for port, what in ((ssh_port, "SSH"), (wireguard_port, "WireGuard")):
        if port is not None and port in used:
            raise PortConflictError(
                f"{what} port {port} on {address} is already used by {used[port]}"
            )

    row = MachineAddress(
        hostname=hostname,
        network=network,
        address=address,
        ssh_port=ssh_port,
        wireguard_port=wireguard_port,
    )
    session.add(row)
    await session.commit()
    logger.info("Added address %s=%s to %s", network, address, hostname)
    return row


async def remove_address(
    session: AsyncSession, hostname: str, network: str, address: IPAddress | str
) -> None:
    """Delete exactly one address row.

    Raises:
        NotFoundError: If no such row exists.
    """
    address = _normalize_address(address)
    row = await session.get(MachineAddress, (hostname, network, address))
    if row is None:
        raise NotFoundError(
            f"Could not find address ({hostname!r}, {network!r}, {address!r}) in database"
        )
    await session.delete(row)
    await session.commit()
    logger.info("Removed address %s=%s from %s", network, address, hostname)


async def list_addresses(session: AsyncSession) -> list[MachineAddress]:
    result = await session.execute(select(MachineAddress))
    return list(result.scalars().all())
