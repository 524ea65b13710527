"""Create the inventory tables.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "networks",
        sa.Column("name", sa.String(length=32), nullable=False),
        sa.PrimaryKeyConstraint("name"),
    )
    op.create_table(
        "owners",
        sa.Column("owner", sa.String(length=32), nullable=False),
        sa.PrimaryKeyConstraint("owner"),
    )
    op.create_table(
        "providers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=32), nullable=False),
        sa.Column("email", sa.String(length=254), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "network_links",
        sa.Column("name", sa.String(length=32), nullable=False),
        sa.Column("other_network", sa.String(length=32), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["name"], ["networks.name"]),
        sa.ForeignKeyConstraint(["other_network"], ["networks.name"]),
        sa.PrimaryKeyConstraint("name", "other_network"),
    )
    op.create_table(
        "machines",
        sa.Column("hostname", sa.String(length=32), nullable=False),
        sa.Column(
            "added_time",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(), nullable=False
        ),
        sa.Column("owner", sa.String(length=32), nullable=False),
        sa.Column("provider_id", sa.Integer(), nullable=True),
        sa.Column("provider_reference", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["owner"], ["owners.owner"]),
        sa.ForeignKeyConstraint(["provider_id"], ["providers.id"]),
        sa.PrimaryKeyConstraint("hostname"),
    )
    op.create_table(
        "wireguard_interfaces",
        sa.Column("hostname", sa.String(length=32), nullable=False),
        sa.Column("wireguard_ipv4_address", sa.String(length=15), nullable=False),
        sa.Column("wireguard_ipv6_address", sa.String(length=39), nullable=False),
        sa.Column("wireguard_port", sa.Integer(), nullable=False),
        sa.Column("wireguard_privkey", sa.String(length=44), nullable=False),
        sa.Column("wireguard_pubkey", sa.String(length=44), nullable=False),
        sa.ForeignKeyConstraint(["hostname"], ["machines.hostname"]),
        sa.PrimaryKeyConstraint("hostname"),
        sa.UniqueConstraint("wireguard_privkey"),
        sa.UniqueConstraint("wireguard_pubkey"),
    )
    op.create_table(
        "ssh_servers",
        sa.Column("hostname", sa.String(length=32), nullable=False),
        sa.Column("ssh_port", sa.Integer(), nullable=False),
        sa.Column("ssh_user", sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(["hostname"], ["machines.hostname"]),
        sa.PrimaryKeyConstraint("hostname"),
    )
    op.create_table(
        "wireguard_keepalives",
        sa.Column("source_machine", sa.String(length=32), nullable=False),
        sa.Column("target_machine", sa.String(length=32), nullable=False),
        sa.Column("interval_sec", sa.Integer(), nullable=False),
        sa.CheckConstraint(
            "interval_sec >= 1 AND interval_sec <= 65535",
            name="ck_wireguard_keepalives_interval_sec",
        ),
        sa.ForeignKeyConstraint(["source_machine"], ["machines.hostname"]),
        sa.ForeignKeyConstraint(["target_machine"], ["machines.hostname"]),
        sa.PrimaryKeyConstraint("source_machine", "target_machine"),
    )
    op.create_table(
        "machine_addresses",
        sa.Column("hostname", sa.String(length=32), nullable=False),
        sa.Column("network", sa.String(length=32), nullable=False),
        sa.Column("address", sa.String(length=39), nullable=False),
        sa.Column("ssh_port", sa.Integer(), nullable=True),
        sa.Column("wireguard_port", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["hostname"], ["machines.hostname"]),
        sa.ForeignKeyConstraint(["network"], ["networks.name"]),
        sa.PrimaryKeyConstraint("hostname", "network", "address"),
        sa.UniqueConstraint("address", "ssh_port"),
        sa.UniqueConstraint("address", "wireguard_port"),
    )


def downgrade() -> None:
    op.drop_table("machine_addresses")
    op.drop_table("wireguard_keepalives")
    op.drop_table("ssh_servers")
    op.drop_table("wireguard_interfaces")
    op.drop_table("machines")
    op.drop_table("network_links")
    op.drop_table("providers")
    op.drop_table("owners")
    op.drop_table("networks")
