"""
Ethereum-style addresses for TWS accounts.

The ledger treats addresses as opaque string keys, but the accounts of a
local deployment (owner, liquidity pool, staking contract, genesis
holders) are derived the same way Ethereum derives them:

    address = keccak256(uncompressed_secp256k1_pubkey[1:])[-20:]

and rendered with the EIP-55 mixed-case checksum.
"""

from __future__ import annotations

import hashlib
import re

from Crypto.Hash import keccak
from ecdsa import SECP256k1, SigningKey

ZERO_ADDRESS: str = "0x" + "0" * 40

_HEX_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_SEED_SALT = b"TWS/address/v1"
_SEED_ITERS = 2048


def keccak256(data: bytes) -> bytes:
    h = keccak.new(digest_bits=256)
    h.update(data)
    return h.digest()


def is_hex_address(value: str) -> bool:
    """True for a ``0x``-prefixed, 40-hex-digit string (any case)."""
    return isinstance(value, str) and bool(_HEX_ADDRESS_RE.match(value))


def to_checksum_address(value: str) -> str:
    """
    Apply the EIP-55 checksum.

    Each hex letter is upper-cased when the matching nibble of
    ``keccak256(lowercase_hex)`` is 8 or above.
    """
    if not is_hex_address(value):
        raise ValueError(f"Not a hex address: {value!r}")
    lower = value[2:].lower()
    digest = keccak256(lower.encode("ascii")).hex()
    out = []
    for ch, nibble in zip(lower, digest):
        if ch.isalpha() and int(nibble, 16) >= 8:
            out.append(ch.upper())
        else:
            out.append(ch)
    return "0x" + "".join(out)


def is_checksum_address(value: str) -> bool:
    return is_hex_address(value) and to_checksum_address(value) == value


def address_from_public_key(public_key: bytes) -> str:
    """Derive the address for a 64-byte (or 0x04-prefixed 65-byte) pubkey."""
    if len(public_key) == 65 and public_key[0] == 4:
        public_key = public_key[1:]
    if len(public_key) != 64:
        raise ValueError("Expected an uncompressed secp256k1 public key")
    return to_checksum_address("0x" + keccak256(public_key)[-20:].hex())


def address_from_seed(seed: str) -> str:
    """
    Deterministic address for a label such as ``"admin"`` or ``"pool"``.

    The private key is PBKDF2-HMAC-SHA256 of the seed; it is discarded
    once the public key has been derived.
    """
    if not seed:
        raise ValueError("seed must be non-empty")
    priv = hashlib.pbkdf2_hmac("sha256", seed.encode("utf-8"), _SEED_SALT, _SEED_ITERS)
    sk = SigningKey.from_string(priv, curve=SECP256k1)
    return address_from_public_key(sk.get_verifying_key().to_string())


def is_zero_address(value: str) -> bool:
    return isinstance(value, str) and value.lower() == ZERO_ADDRESS
