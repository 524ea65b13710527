"""SQLModel table definitions for the infrabase inventory database.

The layout mirrors the PostgreSQL schema the tool grew up with: tunnel and
SSH identities live in their own tables because not every machine has them,
and the sentinel network ``NONE`` is a regular row in ``networks``.

Usage::

    from infrabase.db.models import Machine, MachineAddress
    from sqlmodel import SQLModel, create_engine

    engine = create_engine("sqlite:///infrabase.db")
    SQLModel.metadata.create_all(engine)
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, UniqueConstraint, func
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Topology
# ---------------------------------------------------------------------------


class Network(SQLModel, table=True):
    """A logical network segment, e.g. ``internet`` or ``homelan``."""

    __tablename__ = "networks"

    name: str = Field(primary_key=True, max_length=32)


class NetworkLink(SQLModel, table=True):
    """Machines on ``name`` can reach addresses on ``other_network``.

    A network needs a self-link for its machines to reach each other.
    Lower priority wins when several links apply:

    - ``(internet, internet,  0)``
    - ``(homelan,  homelan,  -1)``  prefer the LAN between LAN machines
    - ``(homelan,  internet,  0)``
    """

    __tablename__ = "network_links"

    name: str = Field(foreign_key="networks.name", primary_key=True, max_length=32)
    other_network: str = Field(foreign_key="networks.name", primary_key=True, max_length=32)
    priority: int


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


class Owner(SQLModel, table=True):
    """A valid machine owner."""

    __tablename__ = "owners"

    owner: str = Field(primary_key=True, max_length=32)


class Provider(SQLModel, table=True):
    """A hosting account."""

    __tablename__ = "providers"

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(max_length=32)
    email: str = Field(max_length=254)


# ---------------------------------------------------------------------------
# Machines
# ---------------------------------------------------------------------------


class Machine(SQLModel, table=True):
    """A machine in the inventory."""

    __tablename__ = "machines"

    hostname: str = Field(primary_key=True, max_length=32)
    added_time: datetime = Field(
        default_factory=_utcnow,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": func.now()},
    )
    owner: str = Field(foreign_key="owners.owner", max_length=32)
    provider_id: int | None = Field(default=None, foreign_key="providers.id")
    provider_reference: str | None = None


class WireguardInterface(SQLModel, table=True):
    """A machine's infrabase-managed WireGuard interface."""

    __tablename__ = "wireguard_interfaces"
    __table_args__ = (
        UniqueConstraint("wireguard_privkey"),
        UniqueConstraint("wireguard_pubkey"),
    )

    hostname: str = Field(foreign_key="machines.hostname", primary_key=True, max_length=32)
    wireguard_ipv4_address: str = Field(max_length=15)
    wireguard_ipv6_address: str = Field(max_length=39)
    wireguard_port: int
    wireguard_privkey: str = Field(max_length=44)
    wireguard_pubkey: str = Field(max_length=44)


class SshServer(SQLModel, table=True):
    """A machine's SSH server."""

    __tablename__ = "ssh_servers"

    hostname: str = Field(foreign_key="machines.hostname", primary_key=True, max_length=32)
    ssh_port: int
    ssh_user: str = Field(default="root", max_length=32)


class WireguardKeepalive(SQLModel, table=True):
    """PersistentKeepalive override for one (source, target) machine pair."""

    __tablename__ = "wireguard_keepalives"
    __table_args__ = (
        CheckConstraint(
            "interval_sec >= 1 AND interval_sec <= 65535",
            name="ck_wireguard_keepalives_interval_sec",
        ),
    )

    source_machine: str = Field(foreign_key="machines.hostname", primary_key=True, max_length=32)
    target_machine: str = Field(foreign_key="machines.hostname", primary_key=True, max_length=32)
    interval_sec: int


class MachineAddress(SQLModel, table=True):
    """One address a machine holds on one network.

    Use a different WireGuard port for each machine behind the same NAT:
    WireGuard remembers one endpoint per peer, and a packet from IP:904 makes
    it forget that the endpoint was configured as IP:905.
    """

    __tablename__ = "machine_addresses"
    __table_args__ = (
        UniqueConstraint("address", "ssh_port"),
        UniqueConstraint("address", "wireguard_port"),
    )

    hostname: str = Field(foreign_key="machines.hostname", primary_key=True, max_length=32)
    network: str = Field(foreign_key="networks.name", primary_key=True, max_length=32)
    address: str = Field(primary_key=True, max_length=39)
    ssh_port: int | None = None
    wireguard_port: int | None = None


__all__ = [
    "Machine",
    "MachineAddress",
    "Network",
    "NetworkLink",
    "Owner",
    "Provider",
    "SshServer",
    "WireguardInterface",
    "WireguardKeepalive",
]
