"""CRUD operations for WireguardKeepalive overrides."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from infrabase.db.models import Machine, WireguardKeepalive
from infrabase.errors import NotFoundError
from infrabase.validation import parse_keepalive_interval


async def set_keepalive(
    session: AsyncSession, source_machine: str, target_machine: str, interval_sec: int
) -> WireguardKeepalive:
    """Create or replace the keepalive *source_machine* uses toward *target_machine*."""
    interval_sec = parse_keepalive_interval(interval_sec)
    for hostname in (source_machine, target_machine):
        if await session.get(Machine, hostname) is None:
            raise NotFoundError(f"Could not find machine {hostname!r} in database")

    row = await session.get(WireguardKeepalive, (source_machine, target_machine))
    if row is None:
        row = WireguardKeepalive(
            source_machine=source_machine,
            target_machine=target_machine,
            interval_sec=interval_sec,
        )
    else:
        row.interval_sec = interval_sec
    session.add(row)
    await session.commit()
    return row


async def remove_keepalive(
    session: AsyncSession, source_machine: str, target_machine: str
) -> None:
    row = await session.get(WireguardKeepalive, (source_machine, target_machine))
    if row is None:
        raise NotFoundError(
            f"Could not find keepalive ({source_machine!r}, {target_machine!r}) in database"
        )
    await session.delete(row)
    await session.commit()


async def list_keepalives(session: AsyncSession) -> list[WireguardKeepalive]:
    stmt = select(WireguardKeepalive).order_by(
        WireguardKeepalive.source_machine, WireguardKeepalive.target_machine
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
