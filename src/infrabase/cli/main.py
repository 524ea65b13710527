"""Infrabase CLI -- machine inventory and WireGuard mesh configuration.

Thin wrapper around the store and the topology engine using click.  Every
command opens one database session through ``asyncio.run`` and maps
:class:`~infrabase.errors.InfrabaseError` to ``Error: <message>`` on stderr
with exit code 1.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from collections.abc import Awaitable, Callable
from typing import Any, NoReturn, TypeVar

import click
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from infrabase.config import Settings, import_env
from infrabase.db.crud import addresses as address_crud
from infrabase.db.crud import keepalives as keepalive_crud
from infrabase.db.crud import machines as machine_crud
from infrabase.db.crud import networks as network_crud
from infrabase.db.engine import dispose_engine, get_engine, init_engine
from infrabase.db.session import create_tables, open_session
from infrabase.errors import InfrabaseError
from infrabase.render import (
    format_table,
    render_nix_data,
    render_ssh_config,
    render_wg_quick,
    write_wireguard_peers,
)
from infrabase.topology import PeerConfigEmitter, Snapshot, load_snapshot
from infrabase.types import natural_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error(msg: str) -> NoReturn:
    """Print an error message to stderr and exit 1."""
    click.echo(msg, err=True)
    raise SystemExit(1)


def _settings(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _run(
    ctx: click.Context,
    func: Callable[..., Awaitable[T]],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Run ``func(session, *args, **kwargs)`` against the configured database."""
    settings = _settings(ctx)

    async def _main() -> T:
        engine = init_engine(settings.database_url)
        try:
            async with open_session(engine) as session:
                return await func(session, *args, **kwargs)
        finally:
            await dispose_engine()

    try:
        return asyncio.run(_main())
    except InfrabaseError as exc:
        _error(f"Error: {exc}")
    except SQLAlchemyError as exc:
        logger.debug("Database failure", exc_info=True)
        _error(f"Error: database error: {exc}")
    except ValueError as exc:
        _error(f"Error: {exc}")


def _configure_logging(settings: Settings, debug: bool) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if debug or settings.debug:
        logging.getLogger("infrabase").setLevel(logging.DEBUG)


def _parse_ip(_ctx: click.Context, _param: click.Parameter, value: str | None):
    if value is None:
        return None
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        raise click.BadParameter(f"{value!r} is not an IP address") from None


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="infrabase")
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Infrabase -- machine inventory and WireGuard mesh configuration."""
    ctx.ensure_object(dict)
    import_env()
    settings = Settings()
    _configure_logging(settings, debug)
    ctx.obj["settings"] = settings


@cli.command("init-db")
@click.pass_context
def init_db(ctx: click.Context) -> None:
    """Create all tables in the configured database."""

    async def _create(_session: AsyncSession) -> None:
        await create_tables(get_engine())

    _run(ctx, _create)
    click.echo("Database initialized.")


# ---------------------------------------------------------------------------
# Machines
# ---------------------------------------------------------------------------


@cli.command("ls")
@click.pass_context
def list_machines(ctx: click.Context) -> None:
    """List machines in natural hostname order."""
    snapshot = _run(ctx, load_snapshot)
    rows = []
    for m in snapshot.sorted_machines():
        rows.append([
            m.hostname,
            m.owner,
            m.added_time.strftime("%Y-%m-%d %H:%M:%S") if m.added_time else None,
            m.tunnel.ipv4_address if m.tunnel else None,
            m.tunnel.ipv6_address if m.tunnel else None,
            m.tunnel.port if m.tunnel else None,
            m.ssh.port if m.ssh else None,
            m.provider_id,
            m.provider_reference,
        ])
    click.echo(format_table(
        ["HOSTNAME", "OWNER", "ADDED", "WIREGUARD_IPV4", "WIREGUARD_IPV6",
         "WIREGUARD_PORT", "SSH_PORT", "PROVIDER", "PROVIDER_REF"],
        rows,
    ), nl=False)


async def _add_machine(session: AsyncSession, settings: Settings, hostname: str, **opts):
    owner = opts["owner"] or settings.default_owner
    provider = opts["provider"] if opts["provider"] is not None else settings.default_provider
    ssh_port = opts["ssh_port"] or settings.default_ssh_port
    ssh_user = opts["ssh_user"] or settings.default_ssh_user
    wireguard_port = opts["wireguard_port"] or settings.default_wireguard_port

    ipv4 = opts["wireguard_ipv4"]
    if ipv4 is None:
        ipv4 = await machine_crud.allocate_wireguard_ipv4(session, settings.wireguard_ipv4_range)
    ipv6 = opts["wireguard_ipv6"]
    if ipv6 is None:
        ipv6 = await machine_crud.allocate_wireguard_ipv6(session, settings.wireguard_ipv6_range)

    await machine_crud.add_machine(
        session,
        hostname,
        owner=owner,
        ssh_port=ssh_port,
        ssh_user=ssh_user,
        wireguard_ipv4_address=ipv4,
        wireguard_ipv6_address=ipv6,
        wireguard_port=wireguard_port,
        provider_id=provider,
        provider_reference=opts["provider_reference"],
    )
    return ipv4, ipv6


@cli.command("add")
@click.argument("hostname")
@click.option("--owner", default=None, help="Owner (default: $DEFAULT_OWNER).")
@click.option("--ssh-port", type=int, default=None, help="SSH port (default: $DEFAULT_SSH_PORT).")
@click.option("--ssh-user", default=None, help="SSH user (default: $DEFAULT_SSH_USER).")
@click.option("--wireguard-ipv4", callback=_parse_ip, default=None,
              help="Tunnel IPv4 address (default: next free in the pool).")
@click.option("--wireguard-ipv6", callback=_parse_ip, default=None,
              help="Tunnel IPv6 address (default: next free in the pool).")
@click.option("--wireguard-port", type=int, default=None,
              help="WireGuard listen port (default: $DEFAULT_WIREGUARD_PORT).")
@click.option("--provider", type=int, default=None, help="Provider id (default: $DEFAULT_PROVIDER).")
@click.option("--provider-reference", default=None, help="Provider's id for the machine.")
@click.pass_context
def add(ctx: click.Context, hostname: str, **opts: Any) -> None:
    """Add a machine with a fresh WireGuard identity."""
    ipv4, ipv6 = _run(ctx, _add_machine, _settings(ctx), hostname, **opts)
    click.echo(f"Added machine {hostname} ({ipv4}, {ipv6})")


@cli.command("rm")
@click.argument("hostname")
@click.pass_context
def remove(ctx: click.Context, hostname: str) -> None:
    """Remove a machine and everything attached to it."""
    _run(ctx, machine_crud.remove_machine, hostname)
    click.echo(f"Removed machine {hostname}")


@cli.command("wg-privkey")
@click.argument("hostname")
@click.pass_context
def wg_privkey(ctx: click.Context, hostname: str) -> None:
    """Print a machine's WireGuard private key."""
    click.echo(_run(ctx, machine_crud.get_wireguard_privkey, hostname))


# ---------------------------------------------------------------------------
# Generated configuration
# ---------------------------------------------------------------------------


@cli.command("nix-data")
@click.pass_context
def nix_data(ctx: click.Context) -> None:
    """Print all machines as a Nix attribute set."""
    click.echo(render_nix_data(_run(ctx, load_snapshot)), nl=False)


def _render(ctx: click.Context, renderer: Callable[[Snapshot, str], str], hostname: str) -> str:
    snapshot = _run(ctx, load_snapshot)
    try:
        return renderer(snapshot, hostname)
    except InfrabaseError as exc:
        _error(f"Error: {exc}")


@cli.command("ssh-config")
@click.option("--for", "for_host", required=True, help="Machine the config is for.")
@click.pass_context
def ssh_config(ctx: click.Context, for_host: str) -> None:
    """Print an SSH client config as seen from one machine."""
    click.echo(_render(ctx, render_ssh_config, for_host), nl=False)


@cli.command("wg-quick")
@click.option("--for", "for_host", required=True, help="Machine the config is for.")
@click.pass_context
def wg_quick(ctx: click.Context, for_host: str) -> None:
    """Print a wg-quick config for one machine."""
    click.echo(_render(ctx, render_wg_quick, for_host), nl=False)


@cli.command("write-wg-peers")
@click.pass_context
def write_wg_peers(ctx: click.Context) -> None:
    """Write a Nix peer list for every tunnel machine."""
    snapshot = _run(ctx, load_snapshot)
    try:
        paths = write_wireguard_peers(snapshot, _settings(ctx).wireguard_peers_path_template)
    except InfrabaseError as exc:
        _error(f"Error: {exc}")
    except OSError as exc:
        _error(f"Error: could not write peers file: {exc}")
    for path in paths:
        click.echo(f"Wrote {path}")


@cli.command("peers")
@click.option("--for", "for_host", required=True, help="Machine to resolve peers for.")
@click.pass_context
def peers(ctx: click.Context, for_host: str) -> None:
    """Show the endpoint each peer resolves to, and which are unreachable."""
    snapshot = _run(ctx, load_snapshot)
    emitter = PeerConfigEmitter(snapshot)
    try:
        entries = emitter.emit_peers(
            for_host, include_accept_only=True, warn_unreachable=False
        )
    except InfrabaseError as exc:
        _error(f"Error: {exc}")

    rows = [
        [
            p.hostname,
            str(p.endpoint) if p.endpoint else None,
            p.endpoint.via if p.endpoint else None,
            p.endpoint.network if p.endpoint else None,
            p.endpoint.priority if p.endpoint else None,
            p.keepalive,
        ]
        for p in entries
    ]
    click.echo(format_table(
        ["PEER", "ENDPOINT", "VIA", "NETWORK", "PRIORITY", "KEEPALIVE"], rows
    ), nl=False)
    for p in entries:
        if not p.dialable:
            click.echo(f"Warning: {for_host} cannot reach {p.hostname}", err=True)


# ---------------------------------------------------------------------------
# infrabase address
# ---------------------------------------------------------------------------


@cli.group()
def address():
    """Manage machine addresses on networks."""


@address.command("ls")
@click.pass_context
def address_ls(ctx: click.Context) -> None:
    snapshot = _run(ctx, load_snapshot)
    rows = [
        [a.hostname, a.network, a.address, a.ssh_port, a.wireguard_port]
        for a in snapshot.sorted_addresses()
    ]
    click.echo(format_table(
        ["HOSTNAME", "NETWORK", "ADDRESS", "SSH_PORT", "WIREGUARD_PORT"], rows
    ), nl=False)


async def _add_address(
    session: AsyncSession,
    settings: Settings,
    hostname: str,
    network: str,
    ip,
    ssh_port: int | None,
    wireguard_port: int | None,
):
    if ssh_port is None:
        ssh_port = settings.default_ssh_port
    if wireguard_port is None:
        if await machine_crud.has_wireguard_interface(session, hostname):
            wireguard_port = settings.default_wireguard_port
    return await address_crud.add_address(
        session, hostname, network, ip, ssh_port=ssh_port, wireguard_port=wireguard_port
    )


@address.command("add")
@click.argument("hostname")
@click.argument("network")
@click.argument("ip", callback=_parse_ip)
@click.option("--ssh-port", type=int, default=None, help="SSH port (default: $DEFAULT_SSH_PORT).")
@click.option("--wireguard-port", type=int, default=None,
              help="WireGuard port (default: $DEFAULT_WIREGUARD_PORT for tunnel machines).")
@click.pass_context
def address_add(
    ctx: click.Context,
    hostname: str,
    network: str,
    ip,
    ssh_port: int | None,
    wireguard_port: int | None,
) -> None:
    """Add an address HOSTNAME holds on NETWORK."""
    row = _run(ctx, _add_address, _settings(ctx), hostname, network, ip, ssh_port, wireguard_port)
    click.echo(f"Added address {row.address} for {hostname} on {network}")


@address.command("rm")
@click.argument("hostname")
@click.argument("network")
@click.argument("ip", callback=_parse_ip)
@click.pass_context
def address_rm(ctx: click.Context, hostname: str, network: str, ip) -> None:
    _run(ctx, address_crud.remove_address, hostname, network, ip)
    click.echo(f"Removed address {ip} for {hostname} on {network}")


# ---------------------------------------------------------------------------
# infrabase network
# ---------------------------------------------------------------------------


@cli.group()
def network():
    """Manage networks and the links between them."""


@network.command("ls")
@click.pass_context
def network_ls(ctx: click.Context) -> None:
    rows = [[n.name] for n in _run(ctx, network_crud.list_networks)]
    click.echo(format_table(["NETWORK"], rows), nl=False)


@network.command("add")
@click.argument("name")
@click.pass_context
def network_add(ctx: click.Context, name: str) -> None:
    _run(ctx, network_crud.add_network, name)
    click.echo(f"Added network {name}")


@network.command("link")
@click.argument("from_network")
@click.argument("to_network")
@click.option("--priority", type=int, default=0, show_default=True,
              help="Link priority; lower is preferred.")
@click.pass_context
def network_link(ctx: click.Context, from_network: str, to_network: str, priority: int) -> None:
    """Let machines on FROM_NETWORK reach addresses on TO_NETWORK."""
    _run(ctx, network_crud.add_network_link, from_network, to_network, priority)
    click.echo(f"Linked {from_network} -> {to_network} (priority {priority})")


@network.command("unlink")
@click.argument("from_network")
@click.argument("to_network")
@click.pass_context
def network_unlink(ctx: click.Context, from_network: str, to_network: str) -> None:
    _run(ctx, network_crud.remove_network_link, from_network, to_network)
    click.echo(f"Unlinked {from_network} -> {to_network}")


@network.command("links")
@click.pass_context
def network_links(ctx: click.Context) -> None:
    rows = [
        [link.name, link.other_network, link.priority]
        for link in _run(ctx, network_crud.list_network_links)
    ]
    click.echo(format_table(["FROM", "TO", "PRIORITY"], rows), nl=False)


# ---------------------------------------------------------------------------
# infrabase owner / provider
# ---------------------------------------------------------------------------


@cli.group()
def owner():
    """Manage machine owners."""


@owner.command("ls")
@click.pass_context
def owner_ls(ctx: click.Context) -> None:
    rows = [[o.owner] for o in _run(ctx, machine_crud.list_owners)]
    click.echo(format_table(["OWNER"], rows), nl=False)


@owner.command("add")
@click.argument("name")
@click.pass_context
def owner_add(ctx: click.Context, name: str) -> None:
    _run(ctx, machine_crud.add_owner, name)
    click.echo(f"Added owner {name}")


@cli.group()
def provider():
    """Manage hosting providers."""


@provider.command("ls")
@click.pass_context
def provider_ls(ctx: click.Context) -> None:
    rows = [[p.id, p.name, p.email] for p in _run(ctx, machine_crud.list_providers)]
    click.echo(format_table(["ID", "NAME", "EMAIL"], rows), nl=False)


@provider.command("add")
@click.argument("name")
@click.argument("email")
@click.pass_context
def provider_add(ctx: click.Context, name: str, email: str) -> None:
    row = _run(ctx, machine_crud.add_provider, name, email)
    click.echo(f"Added provider {row.id}: {name}")


# ---------------------------------------------------------------------------
# infrabase wg-keepalive
# ---------------------------------------------------------------------------


@cli.group("wg-keepalive")
def wg_keepalive():
    """Manage persistent-keepalive overrides between machines."""


@wg_keepalive.command("ls")
@click.pass_context
def wg_keepalive_ls(ctx: click.Context) -> None:
    rows = sorted(
        (
            [k.source_machine, k.target_machine, k.interval_sec]
            for k in _run(ctx, keepalive_crud.list_keepalives)
        ),
        key=lambda r: (natural_key(r[0]), natural_key(r[1])),
    )
    click.echo(format_table(["SOURCE", "TARGET", "INTERVAL_SEC"], rows), nl=False)


@wg_keepalive.command("set")
@click.argument("source")
@click.argument("target")
@click.argument("interval_sec", type=int)
@click.pass_context
def wg_keepalive_set(ctx: click.Context, source: str, target: str, interval_sec: int) -> None:
    """Make SOURCE send keepalives to TARGET every INTERVAL_SEC seconds."""
    _run(ctx, keepalive_crud.set_keepalive, source, target, interval_sec)
    click.echo(f"Keepalive {source} -> {target}: {interval_sec}s")


@wg_keepalive.command("rm")
@click.argument("source")
@click.argument("target")
@click.pass_context
def wg_keepalive_rm(ctx: click.Context, source: str, target: str) -> None:
    _run(ctx, keepalive_crud.remove_keepalive, source, target)
    click.echo(f"Removed keepalive {source} -> {target}")


if __name__ == "__main__":
    cli()
