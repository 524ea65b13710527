"""Field-format validation for inventory records.

PostgreSQL enforces these as domains in the original schema; SQLite cannot,
so every administrative insert runs its values through these parsers first.
"""

from __future__ import annotations

import re

from infrabase.errors import (
    InvalidHostnameError,
    InvalidKeepaliveError,
    InvalidKeyError,
    InvalidNetworkNameError,
    InvalidPortError,
    InvalidUsernameError,
)
from infrabase.types import (
    MAX_KEEPALIVE,
    MAX_PORT,
    MIN_KEEPALIVE,
    MIN_PORT,
    NONE_NETWORK,
)

_MAX_NAME_LEN = 32

_HOSTNAME_RE = re.compile(r"\A[-_a-z0-9]+\Z")
_NETNAME_RE = re.compile(r"\A(NONE|[-_a-z0-9]+)\Z")
_WIREGUARD_KEY_RE = re.compile(r"\A[+/A-Za-z0-9]{43}=\Z")
# Matches the default /etc/adduser.conf NAME_REGEX
_USERNAME_RE = re.compile(r"\A[a-z][-a-z0-9_]{1,31}\Z")


def parse_hostname(raw: str) -> str:
    """Validate a machine hostname.

    Raises:
        InvalidHostnameError: If *raw* is empty, too long, or has characters
            outside ``[-_a-z0-9]``.
    """
    if len(raw) > _MAX_NAME_LEN or not _HOSTNAME_RE.match(raw):
        raise InvalidHostnameError(f"Invalid hostname: {raw!r}")
    return raw


def parse_network_name(raw: str) -> str:
    """Validate a network name; the sentinel ``NONE`` is accepted."""
    if len(raw) > _MAX_NAME_LEN or not _NETNAME_RE.match(raw):
        raise InvalidNetworkNameError(f"Invalid network name: {raw!r}")
    return raw


def is_none_network(name: str) -> bool:
    return name == NONE_NETWORK


def parse_port(value: int | str, what: str = "port") -> int:
    """Validate a TCP/UDP port number (1..65535)."""
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise InvalidPortError(f"Could not parse {what} {value!r} as a port") from None
    if not MIN_PORT <= port <= MAX_PORT:
        raise InvalidPortError(
            f"{what} {port} out of range {MIN_PORT}-{MAX_PORT}"
        )
    return port


def parse_wireguard_key(raw: str) -> str:
    """Validate a base64 WireGuard key (43 base64 chars plus ``=``)."""
    if not _WIREGUARD_KEY_RE.match(raw):
        raise InvalidKeyError(f"Invalid WireGuard key: {raw!r}")
    return raw


def parse_keepalive_interval(value: int | str) -> int:
    """Validate a PersistentKeepalive interval in seconds."""
    try:
        interval = int(value)
    except (TypeError, ValueError):
        raise InvalidKeepaliveError(
            f"Could not parse keepalive interval {value!r}"
        ) from None
    if not MIN_KEEPALIVE <= interval <= MAX_KEEPALIVE:
        raise InvalidKeepaliveError(
            f"Keepalive interval {interval} out of range "
            f"{MIN_KEEPALIVE}-{MAX_KEEPALIVE}"
        )
    return interval


def parse_username(raw: str) -> str:
    """Validate an SSH login name."""
    if not _USERNAME_RE.match(raw):
        raise InvalidUsernameError(f"Invalid username: {raw!r}")
    return raw
