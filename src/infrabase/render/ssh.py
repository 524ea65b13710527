"""OpenSSH client configuration for one machine's view of the fleet."""

from __future__ import annotations

from infrabase.topology.resolver import EndpointResolver
from infrabase.topology.snapshot import Snapshot


def render_ssh_config(
    snapshot: Snapshot, hostname: str, resolver: EndpointResolver | None = None
) -> str:
    """``Host`` blocks for every machine, as seen from *hostname*.

    Machines with no usable address or port are left out.
    """
    me = snapshot.machine(hostname)
    resolver = resolver or EndpointResolver(snapshot)

    blocks = [f"# infrabase-generated SSH config for {hostname}\n"]
    for machine in snapshot.sorted_machines():
        endpoint = resolver.resolve_ssh(me, machine)
        if endpoint is None:
            continue
        lines = [
            f"# owner: {machine.owner}",
            f"Host {machine.hostname}",
            f"  HostName {endpoint.address}",
            f"  Port {endpoint.port}",
        ]
        if machine.ssh is not None:
            lines.append(f"  User {machine.ssh.user}")
        blocks.append("\n".join(lines) + "\n")
    return "\n".join(blocks)
