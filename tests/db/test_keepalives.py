"""Tests for keepalive override CRUD operations."""

from __future__ import annotations

import pytest

from infrabase.db.crud.keepalives import list_keepalives, remove_keepalive, set_keepalive
from infrabase.errors import InvalidKeepaliveError, NotFoundError


async def test_set_and_list(inventory):
    await set_keepalive(inventory, "bob", "carol", 25)
    await set_keepalive(inventory, "alice", "carol", 60)
    rows = await list_keepalives(inventory)
    assert [(k.source_machine, k.target_machine, k.interval_sec) for k in rows] == [
        ("alice", "carol", 60),
        ("bob", "carol", 25),
    ]


async def test_set_replaces_interval(inventory):
    await set_keepalive(inventory, "bob", "carol", 25)
    await set_keepalive(inventory, "bob", "carol", 10)
    [row] = await list_keepalives(inventory)
    assert row.interval_sec == 10


async def test_interval_range(inventory):
    with pytest.raises(InvalidKeepaliveError):
        await set_keepalive(inventory, "bob", "carol", 0)
    with pytest.raises(InvalidKeepaliveError):
        await set_keepalive(inventory, "bob", "carol", 65536)


async def test_unknown_machine(inventory):
    with pytest.raises(NotFoundError):
        await set_keepalive(inventory, "bob", "ghost", 25)


async def test_remove(inventory):
    await set_keepalive(inventory, "bob", "carol", 25)
    await remove_keepalive(inventory, "bob", "carol")
    assert await list_keepalives(inventory) == []
    with pytest.raises(NotFoundError):
        await remove_keepalive(inventory, "bob", "carol")
