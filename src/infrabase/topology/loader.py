"""Load a :class:`Snapshot` from the store in a single read transaction."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from infrabase.db.models import (
    Machine,
    MachineAddress,
    Network,
    NetworkLink,
    Provider,
    SshServer,
    WireguardInterface,
    WireguardKeepalive,
)
from infrabase.db.retry import db_retry
from infrabase.topology.snapshot import Snapshot

logger = logging.getLogger(__name__)


async def _read_all(session: AsyncSession) -> Snapshot:
    networks = (await session.execute(select(Network.name))).scalars().all()
    links = (await session.execute(select(NetworkLink))).scalars().all()

    machine_rows = (
        await session.execute(
            select(Machine, WireguardInterface, SshServer)
            .outerjoin(WireguardInterface, WireguardInterface.hostname == Machine.hostname)
            .outerjoin(SshServer, SshServer.hostname == Machine.hostname)
        )
    ).all()
    addresses = (await session.execute(select(MachineAddress))).scalars().all()
    keepalives = (await session.execute(select(WireguardKeepalive))).scalars().all()
    providers = (await session.execute(select(Provider).order_by(Provider.id))).scalars().all()

    return Snapshot.from_rows(
        networks=networks,
        links=links,
        machines=[m for m, _, _ in machine_rows],
        wireguard_interfaces=[wg for _, wg, _ in machine_rows if wg is not None],
        ssh_servers=[ssh for _, _, ssh in machine_rows if ssh is not None],
        addresses=addresses,
        keepalives=keepalives,
        providers=providers,
    )


@db_retry()
async def load_snapshot(session: AsyncSession) -> Snapshot:
    """Read every topology table in one transaction and freeze the result.

    Mutations committed after this returns are invisible to the snapshot.

    Raises:
        ConfigurationError: If a loaded record breaks a topology invariant.
    """
    if session.in_transaction():
        snapshot = await _read_all(session)
    else:
        async with session.begin():
            snapshot = await _read_all(session)
    logger.info(
        "Loaded snapshot of %d machines and %d network links",
        len(snapshot.machines), len(snapshot.links),
    )
    return snapshot
