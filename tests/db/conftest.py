"""Shared test fixtures for infrabase database CRUD tests.

Provides an in-memory SQLite async engine and per-test AsyncSession.
"""

from __future__ import annotations

from ipaddress import IPv4Address, IPv6Address

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

import infrabase.db.models  # noqa: F401 -- registers all tables with SQLModel.metadata
from infrabase.db.crud.machines import add_machine, add_owner
from infrabase.db.crud.networks import add_network, add_network_link


@pytest.fixture
async def engine():
    """Create an in-memory SQLite async engine with all tables."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine):
    """Provide an AsyncSession for each test."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as sess:
        yield sess


async def make_machine(session, hostname, index, **kwargs):
    """Helper to add a machine with sensible defaults."""
    defaults = dict(
        owner="ops",
        ssh_port=22,
        ssh_user="root",
        wireguard_ipv4_address=IPv4Address(f"10.200.0.{index}"),
        wireguard_ipv6_address=IPv6Address(f"fd00:200::{index:x}"),
        wireguard_port=51820,
    )
    defaults.update(kwargs)
    return await add_machine(session, hostname, **defaults)


@pytest.fixture
def machine_factory():
    return make_machine


@pytest.fixture
async def inventory(session):
    """The home LAN example: owner, networks, links and three machines."""
    await add_owner(session, "ops")
    for name in ("homelan", "internet"):
        await add_network(session, name)
    await add_network_link(session, "internet", "internet", 0)
    await add_network_link(session, "homelan", "homelan", -1)
    await add_network_link(session, "homelan", "internet", 0)
    for index, hostname in enumerate(("alice", "bob", "carol"), start=1):
        await make_machine(session, hostname, index)
    return session
