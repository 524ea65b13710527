"""WireGuard key generation.

Generates clamped Curve25519 private keys and derives their public keys
with PyNaCl (libsodium).  Keys are exchanged as base64 text, the format
``wg`` uses.
"""

from __future__ import annotations

from dataclasses import dataclass

import nacl.utils
from nacl.public import PrivateKey

from infrabase.errors import InvalidKeyError
from infrabase.types import WIREGUARD_KEY_BYTES, b64_decode, b64_encode


@dataclass(frozen=True)
class Keypair:
    """A WireGuard keypair as 44-character base64 strings."""

    privkey: str
    pubkey: str


def clamp_private_key(raw: bytes) -> bytes:
    """Apply Curve25519 clamping the same way ``wg genkey`` does."""
    if len(raw) != WIREGUARD_KEY_BYTES:
        raise InvalidKeyError(
            f"Private key must be {WIREGUARD_KEY_BYTES} bytes, got {len(raw)}"
        )
    key = bytearray(raw)
    key[0] &= 248
    key[31] = (key[31] & 127) | 64
    return bytes(key)


def generate_keypair() -> Keypair:
    """Generate a fresh WireGuard keypair."""
    privkey = clamp_private_key(nacl.utils.random(WIREGUARD_KEY_BYTES))
    return keypair_from_private(b64_encode(privkey))


def public_key_for(privkey: str) -> str:
    """Derive the base64 public key for a base64 private key (``wg pubkey``)."""
    try:
        raw = b64_decode(privkey)
    except ValueError as exc:
        raise InvalidKeyError(f"Private key is not valid base64: {exc}") from exc
    if len(raw) != WIREGUARD_KEY_BYTES:
        raise InvalidKeyError(
            f"Private key must be {WIREGUARD_KEY_BYTES} bytes, got {len(raw)}"
        )
    return b64_encode(PrivateKey(raw).public_key.encode())


def keypair_from_private(privkey: str) -> Keypair:
    return Keypair(privkey=privkey, pubkey=public_key_for(privkey))
