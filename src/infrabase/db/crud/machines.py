"""CRUD operations for machines, their identities, owners and providers.

Every function takes ``session: AsyncSession`` as its first parameter.
Writes that span several tables are committed as one transaction.
"""

from __future__ import annotations

import ipaddress
import logging

from sqlalchemy import delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from infrabase.addressing import next_unused_ipv4, next_unused_ipv6
from infrabase.crypto import Keypair, generate_keypair
from infrabase.db.models import (
    Machine,
    MachineAddress,
    Owner,
    Provider,
    SshServer,
    WireguardInterface,
    WireguardKeepalive,
)
from infrabase.errors import (
    AddressPoolExhaustedError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from infrabase.validation import (
    parse_hostname,
    parse_port,
    parse_username,
    parse_wireguard_key,
)

logger = logging.getLogger(__name__)

IPv4Range = tuple[ipaddress.IPv4Address, ipaddress.IPv4Address]
IPv6Range = tuple[ipaddress.IPv6Address, ipaddress.IPv6Address]


# ---------------------------------------------------------------------------
# Owners and providers
# ---------------------------------------------------------------------------


async def add_owner(session: AsyncSession, owner: str) -> Owner:
    if await session.get(Owner, owner) is not None:
        raise ConflictError(f"Owner {owner!r} already exists")
    row = Owner(owner=owner)
    session.add(row)
    await session.commit()
    return row


async def list_owners(session: AsyncSession) -> list[Owner]:
    result = await session.execute(select(Owner).order_by(Owner.owner))
    return list(result.scalars().all())


async def add_provider(session: AsyncSession, name: str, email: str) -> Provider:
    if "@" not in email.strip("@"):
        raise ValidationError(f"Invalid provider email: {email!r}")
    provider = Provider(name=name, email=email)
    session.add(provider)
    await session.commit()
    await session.refresh(provider)
    return provider


async def list_providers(session: AsyncSession) -> list[Provider]:
    result = await session.execute(select(Provider).order_by(Provider.id))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Tunnel address allocation
# ---------------------------------------------------------------------------


async def allocate_wireguard_ipv4(
    session: AsyncSession, pool: IPv4Range
) -> ipaddress.IPv4Address:
    """Pick the first unused tunnel IPv4 address in *pool*."""
    result = await session.execute(select(WireguardInterface.wireguard_ipv4_address))
    existing = [ipaddress.IPv4Address(a) for a in result.scalars().all()]
    ip = next_unused_ipv4(existing, *pool)
    if ip is None:
        raise AddressPoolExhaustedError(
            "Could not find an unused WireGuard IPv4 address between "
            "WIREGUARD_IPV4_START and WIREGUARD_IPV4_END"
        )
    return ip


async def allocate_wireguard_ipv6(
    session: AsyncSession, pool: IPv6Range
) -> ipaddress.IPv6Address:
    """Pick the first unused tunnel IPv6 address in *pool*."""
    result = await session.execute(select(WireguardInterface.wireguard_ipv6_address))
    existing = [ipaddress.IPv6Address(a) for a in result.scalars().all()]
    ip = next_unused_ipv6(existing, *pool)
    if ip is None:
        raise AddressPoolExhaustedError(
            "Could not find an unused WireGuard IPv6 address between "
            "WIREGUARD_IPV6_START and WIREGUARD_IPV6_END"
        )
    return ip


# ---------------------------------------------------------------------------
# Machines
# ---------------------------------------------------------------------------


async def get_machine(session: AsyncSession, hostname: str) -> Machine | None:
    return await session.get(Machine, hostname)


async def has_wireguard_interface(session: AsyncSession, hostname: str) -> bool:
    return await session.get(WireguardInterface, hostname) is not None


async def add_machine(
    session: AsyncSession,
    hostname: str,
    *,
    owner: str,
    ssh_port: int,
    ssh_user: str,
    wireguard_ipv4_address: ipaddress.IPv4Address,
    wireguard_ipv6_address: ipaddress.IPv6Address,
    wireguard_port: int,
    provider_id: int | None = None,
    provider_reference: str | None = None,
    keypair: Keypair | None = None,
) -> Machine:
    """Insert a machine with its SSH server and WireGuard interface.

    A fresh keypair is generated unless *keypair* is given.

    Raises:
        ConflictError: If the hostname, tunnel address or key is taken.
        NotFoundError: If *owner* or *provider_id* does not exist.
    """
    hostname = parse_hostname(hostname)
    ssh_port = parse_port(ssh_port, what="SSH port")
    ssh_user = parse_username(ssh_user)
    wireguard_port = parse_port(wireguard_port, what="WireGuard port")
    if ipaddress.ip_address(str(wireguard_ipv4_address)).version != 4:
        raise ValidationError(f"WireGuard IPv4 address {wireguard_ipv4_address} is not IPv4")
    if ipaddress.ip_address(str(wireguard_ipv6_address)).version != 6:
        raise ValidationError(f"WireGuard IPv6 address {wireguard_ipv6_address} is not IPv6")

    if await session.get(Machine, hostname) is not None:
        raise ConflictError(f"Machine {hostname!r} already exists")
    if await session.get(Owner, owner) is None:
        raise NotFoundError(f"Could not find owner {owner!r} in database")
    if provider_id is not None and await session.get(Provider, provider_id) is None:
        raise NotFoundError(f"Could not find provider {provider_id} in database")

    taken = await session.execute(
        select(WireguardInterface.hostname).where(
            or_(
                WireguardInterface.wireguard_ipv4_address == str(wireguard_ipv4_address),
                WireguardInterface.wireguard_ipv6_address == str(wireguard_ipv6_address),
            )
        )
    )
    holder = taken.scalars().first()
    if holder is not None:
        raise ConflictError(
            f"WireGuard address {wireguard_ipv4_address} or "
            f"{wireguard_ipv6_address} is already used by {holder!r}"
        )

    keypair = keypair or generate_keypair()
    parse_wireguard_key(keypair.privkey)
    parse_wireguard_key(keypair.pubkey)

    machine = Machine(
        hostname=hostname,
        owner=owner,
        provider_id=provider_id,
        provider_reference=provider_reference,
    )
    session.add(machine)
    await session.flush()
    session.add(SshServer(hostname=hostname, ssh_port=ssh_port, ssh_user=ssh_user))
    session.add(
        WireguardInterface(
            hostname=hostname,
            wireguard_ipv4_address=str(wireguard_ipv4_address),
            wireguard_ipv6_address=str(wireguard_ipv6_address),
            wireguard_port=wireguard_port,
            wireguard_privkey=keypair.privkey,
            wireguard_pubkey=keypair.pubkey,
        )
    )
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError(f"Could not add machine {hostname!r}: {exc.orig}") from exc

    logger.info(
        "Added machine %s (wg %s, %s)",
        hostname, wireguard_ipv4_address, wireguard_ipv6_address,
    )
    return machine


async def remove_machine(session: AsyncSession, hostname: str) -> None:
    """Remove all mentions of *hostname* from the database in one transaction."""
    if await session.get(Machine, hostname) is None:
        raise NotFoundError(f"Could not find machine {hostname!r} in database")

    await session.execute(delete(WireguardInterface).where(WireguardInterface.hostname == hostname))
    await session.execute(delete(SshServer).where(SshServer.hostname == hostname))
    await session.execute(delete(MachineAddress).where(MachineAddress.hostname == hostname))
    await session.execute(
        delete(WireguardKeepalive).where(
            or_(
                WireguardKeepalive.source_machine == hostname,
                WireguardKeepalive.target_machine == hostname,
            )
        )
    )
    await session.execute(delete(Machine).where(Machine.hostname == hostname))
    await session.commit()
    logger.info("Removed machine %s", hostname)


async def get_wireguard_privkey(session: AsyncSession, hostname: str) -> str:
    """Return a machine's WireGuard private key."""
    if await session.get(Machine, hostname) is None:
        raise NotFoundError(f"Could not find machine {hostname!r} in database")
    interface = await session.get(WireguardInterface, hostname)
    if interface is None:
        raise NotFoundError(f"Machine {hostname!r} does not have a WireGuard interface")
    return interface.wireguard_privkey
