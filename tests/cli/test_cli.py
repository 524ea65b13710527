"""CLI tests using click.testing.CliRunner.

Each test gets its own SQLite file and a non-existent env file so the
developer's own ``~/.config/infrabase/env`` never leaks in.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from infrabase.cli.main import cli


@pytest.fixture
def runner():
    """Click CliRunner for CLI testing."""
    return CliRunner()


@pytest.fixture
def env(tmp_path: Path) -> dict[str, str]:
    return {
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'infrabase.db'}",
        "INFRABASE_ENV_FILE": str(tmp_path / "absent.env"),
        "DEFAULT_OWNER": "ops",
        "DEFAULT_SSH_PORT": "22",
        "DEFAULT_SSH_USER": "root",
        "DEFAULT_WIREGUARD_PORT": "51820",
        "WIREGUARD_IPV4_START": "10.200.0.1",
        "WIREGUARD_IPV4_END": "10.200.0.254",
        "WIREGUARD_IPV6_START": "fd00:200::1",
        "WIREGUARD_IPV6_END": "fd00:200::ffff",
        "WIREGUARD_PEERS_PATH_TEMPLATE": str(tmp_path / "peers" / "{hostname}.nix"),
    }


@pytest.fixture
def invoke(runner: CliRunner, env):
    def _invoke(*args: str, **overrides):
        return runner.invoke(cli, list(args), env={**env, **overrides})

    return _invoke


MESH_SETUP = [
    ("init-db",),
    ("owner", "add", "ops"),
    ("network", "add", "homelan"),
    ("network", "add", "internet"),
    ("network", "link", "internet", "internet"),
    ("network", "link", "homelan", "homelan", "--priority", "-1"),
    ("network", "link", "homelan", "internet"),
    ("add", "alice"),
    ("add", "bob"),
    ("add", "carol"),
    ("add", "dave"),
    ("address", "add", "alice", "homelan", "10.0.0.2"),
    ("address", "add", "alice", "internet", "203.0.113.2"),
    ("address", "add", "bob", "homelan", "10.0.0.3"),
    ("address", "add", "carol", "internet", "198.51.100.4"),
]


@pytest.fixture
def mesh(invoke):
    """The home LAN example built through the CLI."""
    for args in MESH_SETUP:
        result = invoke(*args)
        assert result.exit_code == 0, f"{args}: {result.output}"
    return invoke


# ---------------------------------------------------------------------------
# Basics
# ---------------------------------------------------------------------------


def test_cli_help(runner: CliRunner):
    result = runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for cmd in (
        "ls", "add", "rm", "nix-data", "ssh-config", "wg-quick", "write-wg-peers",
        "wg-privkey", "init-db", "address", "network", "owner", "provider",
        "wg-keepalive", "peers",
    ):
        assert cmd in result.output


def test_cli_version(runner: CliRunner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_uninitialized_database(invoke):
    result = invoke("ls")
    assert result.exit_code == 1
    assert "Error:" in result.output


# ---------------------------------------------------------------------------
# Machines
# ---------------------------------------------------------------------------


def test_add_allocates_tunnel_addresses(mesh):
    result = mesh("add", "erin")
    assert result.exit_code == 0
    assert "10.200.0.5" in result.output
    assert "fd00:200::5" in result.output


def test_ls_natural_order(mesh):
    mesh("add", "web10")
    mesh("add", "web2")
    result = mesh("ls")
    assert result.exit_code == 0
    lines = result.output.splitlines()
    assert lines[0].split()[0] == "HOSTNAME"
    assert [line.split()[0] for line in lines[2:]] == ["alice", "bob", "carol", "dave", "web2", "web10"]


def test_add_duplicate(mesh):
    result = mesh("add", "alice")
    assert result.exit_code == 1
    assert "Error:" in result.output
    assert "already exists" in result.output


def test_add_invalid_hostname(mesh):
    result = mesh("add", "Alice")
    assert result.exit_code == 1
    assert "Invalid hostname" in result.output


def test_add_without_default_owner(mesh):
    result = mesh("add", "erin", DEFAULT_OWNER=None)
    assert result.exit_code == 1
    assert "DEFAULT_OWNER" in result.output


def test_add_with_explicit_options(mesh):
    result = mesh(
        "add", "erin",
        "--wireguard-ipv4", "10.200.0.100",
        "--wireguard-ipv6", "fd00:200::100",
        "--ssh-port", "2222",
    )
    assert result.exit_code == 0, result.output
    listing = mesh("ls").output
    [erin] = [line for line in listing.splitlines() if line.startswith("erin")]
    assert "10.200.0.100" in erin
    assert "2222" in erin


def test_rm(mesh):
    result = mesh("rm", "bob")
    assert result.exit_code == 0
    assert "bob" not in mesh("ls").output
    assert "10.0.0.3" not in mesh("address", "ls").output


def test_rm_missing(mesh):
    result = mesh("rm", "ghost")
    assert result.exit_code == 1
    assert "Error: Could not find machine 'ghost'" in result.output


def test_wg_privkey(mesh):
    result = mesh("wg-privkey", "alice")
    assert result.exit_code == 0
    assert len(result.output.strip()) == 44


# ---------------------------------------------------------------------------
# Addresses, networks, owners, providers
# ---------------------------------------------------------------------------


def test_address_ls(mesh):
    result = mesh("address", "ls")
    assert result.exit_code == 0
    rows = [line.split() for line in result.output.splitlines()[2:]]
    assert rows[0] == ["alice", "homelan", "10.0.0.2", "22", "51820"]
    assert [r[0] for r in rows] == ["alice", "alice", "bob", "carol"]


def test_address_add_bad_ip(mesh):
    result = mesh("address", "add", "alice", "homelan", "10.0.0.256")
    assert result.exit_code == 2
    assert "not an IP address" in result.output


def test_address_port_conflict(mesh):
    result = mesh("address", "add", "bob", "internet", "203.0.113.2")
    assert result.exit_code == 1
    assert "already used" in result.output


def test_address_rm(mesh):
    result = mesh("address", "rm", "alice", "homelan", "10.0.0.2")
    assert result.exit_code == 0
    assert "10.0.0.2" not in mesh("address", "ls").output


def test_network_ls_and_links(mesh):
    networks = mesh("network", "ls").output.splitlines()[2:]
    assert networks == ["homelan", "internet"]

    links = [line.split() for line in mesh("network", "links").output.splitlines()[2:]]
    assert links == [
        ["homelan", "homelan", "-1"],
        ["homelan", "internet", "0"],
        ["internet", "internet", "0"],
    ]


def test_network_unlink(mesh):
    assert mesh("network", "unlink", "homelan", "internet").exit_code == 0
    result = mesh("network", "unlink", "homelan", "internet")
    assert result.exit_code == 1


def test_owner_and_provider(mesh):
    assert mesh("owner", "add", "alice").exit_code == 0
    assert mesh("owner", "ls").output.splitlines()[2:] == ["alice", "ops"]

    result = mesh("provider", "add", "hetzner", "billing@example.com")
    assert result.exit_code == 0
    assert "Added provider 1" in result.output
    assert "hetzner" in mesh("provider", "ls").output


def test_keepalives(mesh):
    assert mesh("wg-keepalive", "set", "bob", "carol", "25").exit_code == 0
    rows = [line.split() for line in mesh("wg-keepalive", "ls").output.splitlines()[2:]]
    assert rows == [["bob", "carol", "25"]]
    assert "PersistentKeepalive = 25" in mesh("wg-quick", "--for", "bob").output
    assert mesh("wg-keepalive", "rm", "bob", "carol").exit_code == 0
    assert mesh("wg-keepalive", "rm", "bob", "carol").exit_code == 1


def test_keepalive_out_of_range(mesh):
    result = mesh("wg-keepalive", "set", "bob", "carol", "0")
    assert result.exit_code == 1
    assert "out of range" in result.output


# ---------------------------------------------------------------------------
# Generated configuration
# ---------------------------------------------------------------------------


def test_peers(mesh):
    result = mesh("peers", "--for", "carol")
    assert result.exit_code == 0
    rows = [line.split() for line in result.output.splitlines()[2:] if not line.startswith("Warning")]
    assert rows[0][:2] == ["alice", "203.0.113.2:51820"]
    assert "Warning: carol cannot reach bob" in result.output


def test_peers_warns_once_per_unreachable_peer(mesh, caplog):
    with caplog.at_level(logging.WARNING, logger="infrabase"):
        result = mesh("peers", "--for", "carol")
    assert result.exit_code == 0
    assert result.output.count("cannot reach bob") == 1
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_wg_quick(mesh):
    result = mesh("wg-quick", "--for", "bob")
    assert result.exit_code == 0
    assert result.output.startswith("# infrabase-generated wg-quick config for bob\n")
    assert "Endpoint = 10.0.0.2:51820" in result.output
    assert "Endpoint = 198.51.100.4:51820" in result.output


def test_wg_quick_unknown_machine(mesh):
    result = mesh("wg-quick", "--for", "ghost")
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_ssh_config(mesh):
    result = mesh("ssh-config", "--for", "bob")
    assert result.exit_code == 0
    assert "Host alice\n  HostName 10.0.0.2\n  Port 22\n" in result.output


def test_nix_data(mesh):
    result = mesh("nix-data")
    assert result.exit_code == 0
    assert result.output.startswith("{\n")
    assert 'ip = "198.51.100.4"' in result.output


def test_write_wg_peers(mesh, env):
    result = mesh("write-wg-peers")
    assert result.exit_code == 0, result.output
    peers_dir = Path(env["WIREGUARD_PEERS_PATH_TEMPLATE"]).parent
    assert sorted(p.name for p in peers_dir.iterdir()) == [
        "alice.nix", "bob.nix", "carol.nix", "dave.nix",
    ]
    assert '"10.0.0.2:51820"' in (peers_dir / "bob.nix").read_text()


def test_write_wg_peers_without_template(mesh):
    result = mesh("write-wg-peers", WIREGUARD_PEERS_PATH_TEMPLATE=None)
    assert result.exit_code == 1
    assert "WIREGUARD_PEERS_PATH_TEMPLATE" in result.output
