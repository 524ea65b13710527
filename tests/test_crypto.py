"""Tests for infrabase.crypto WireGuard key generation."""

from __future__ import annotations

import base64

import pytest
from nacl.public import PrivateKey

from infrabase.crypto import (
    Keypair,
    clamp_private_key,
    generate_keypair,
    keypair_from_private,
    public_key_for,
)
from infrabase.errors import InvalidKeyError
from infrabase.validation import parse_wireguard_key


class TestGenerateKeypair:
    def test_keys_are_wireguard_format(self):
        kp = generate_keypair()
        assert isinstance(kp, Keypair)
        assert parse_wireguard_key(kp.privkey) == kp.privkey
        assert parse_wireguard_key(kp.pubkey) == kp.pubkey

    def test_private_key_is_clamped(self):
        raw = base64.b64decode(generate_keypair().privkey)
        assert raw[0] & 7 == 0
        assert raw[31] & 128 == 0
        assert raw[31] & 64 == 64

    def test_public_key_matches_private(self):
        kp = generate_keypair()
        expected = PrivateKey(base64.b64decode(kp.privkey)).public_key.encode()
        assert base64.b64decode(kp.pubkey) == expected

    def test_keypairs_are_unique(self):
        assert generate_keypair().privkey != generate_keypair().privkey


class TestClamp:
    def test_all_ones(self):
        clamped = clamp_private_key(b"\xff" * 32)
        assert clamped[0] == 0xF8
        assert clamped[31] == 0x7F
        assert clamped[1:31] == b"\xff" * 30

    def test_all_zeros(self):
        clamped = clamp_private_key(b"\x00" * 32)
        assert clamped[31] == 0x40

    def test_wrong_length(self):
        with pytest.raises(InvalidKeyError):
            clamp_private_key(b"\x00" * 31)


class TestPublicKeyFor:
    def test_roundtrip_with_keypair(self):
        kp = generate_keypair()
        assert public_key_for(kp.privkey) == kp.pubkey
        assert keypair_from_private(kp.privkey) == kp

    def test_rejects_bad_base64(self):
        with pytest.raises(InvalidKeyError):
            public_key_for("not base64!")

    def test_rejects_short_key(self):
        with pytest.raises(InvalidKeyError):
            public_key_for(base64.b64encode(b"\x01" * 16).decode())
