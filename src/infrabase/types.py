"""Core constants and small utility functions shared across infrabase."""

from __future__ import annotations

import base64
import re

# Sentinel network for machines with no rows in machine_addresses
NONE_NETWORK = "NONE"

# WireGuard keys are 32 bytes, base64 with padding -> 44 chars
WIREGUARD_KEY_BYTES = 32
WIREGUARD_KEY_LENGTH = 44

MIN_PORT = 1
MAX_PORT = 65535

# `man wg`: PersistentKeepalive is "between 1 and 65535 inclusive"
MIN_KEEPALIVE = 1
MAX_KEEPALIVE = 65535

_DIGITS_RE = re.compile(r"(\d+)")


def b64_encode(data: bytes) -> str:
    """Standard base64 encode *data*, keeping padding (WireGuard format)."""
    return base64.b64encode(data).decode("ascii")


def b64_decode(s: str) -> bytes:
    """Standard base64 decode *s*."""
    return base64.b64decode(s, validate=True)


def natural_key(s: str) -> tuple:
    """Sort key that orders ``host2`` before ``host10``.

    Digit runs compare numerically, text runs compare as strings.  The raw
    string is appended so that keys are total (``a01`` vs ``a1``).
    """
    parts = []
    for chunk in _DIGITS_RE.split(s):
        if not chunk:
            continue
        if chunk.isdigit():
            parts.append((0, int(chunk), ""))
        else:
            parts.append((1, 0, chunk))
    return (tuple(parts), s)
