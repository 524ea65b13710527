"""Text renderers that turn resolved topology into configuration files."""

from infrabase.render.nix import render_nix_data, render_nix_peers, to_nix
from infrabase.render.ssh import render_ssh_config
from infrabase.render.table import format_table, to_cell
from infrabase.render.wireguard import (
    peers_file_path,
    render_wg_quick,
    write_wireguard_peers,
)

__all__ = [
    "format_table",
    "peers_file_path",
    "render_nix_data",
    "render_nix_peers",
    "render_ssh_config",
    "render_wg_quick",
    "to_cell",
    "to_nix",
    "write_wireguard_peers",
]
