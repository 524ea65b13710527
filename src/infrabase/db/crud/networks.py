"""CRUD operations for Network and NetworkLink entities.

Every function takes ``session: AsyncSession`` as its first parameter.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from infrabase.db.models import Network, NetworkLink
from infrabase.errors import ConflictError, NotFoundError
from infrabase.validation import parse_network_name


async def add_network(session: AsyncSession, name: str) -> Network:
    """Insert a network.  ``NONE`` is accepted as the no-address sentinel."""
    name = parse_network_name(name)
    if await session.get(Network, name) is not None:
        raise ConflictError(f"Network {name!r} already exists")
    network = Network(name=name)
    session.add(network)
    await session.commit()
    return network


async def list_networks(session: AsyncSession) -> list[Network]:
    result = await session.execute(select(Network).order_by(Network.name))
    return list(result.scalars().all())


async def _require_network(session: AsyncSession, name: str) -> None:
    if await session.get(Network, name) is None:
        raise NotFoundError(f"Could not find network {name!r} in database")


async def add_network_link(
    session: AsyncSession, name: str, other_network: str, priority: int
) -> NetworkLink:
    """Declare that machines on *name* can reach addresses on *other_network*.

    Re-linking an existing pair replaces its priority.
    """
    name = parse_network_name(name)
    other_network = parse_network_name(other_network)
    await _require_network(session, name)
    await _require_network(session, other_network)

    link = await session.get(NetworkLink, (name, other_network))
    if link is None:
        link = NetworkLink(name=name, other_network=other_network, priority=priority)
    else:
        link.priority = priority
    session.add(link)
    await session.commit()
    return link


async def remove_network_link(
    session: AsyncSession, name: str, other_network: str
) -> None:
    link = await session.get(NetworkLink, (name, other_network))
    if link is None:
        raise NotFoundError(
            f"Could not find network link ({name!r}, {other_network!r}) in database"
        )
    await session.delete(link)
    await session.commit()


async def list_network_links(session: AsyncSession) -> list[NetworkLink]:
    stmt = select(NetworkLink).order_by(
        NetworkLink.name, NetworkLink.priority, NetworkLink.other_network
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
