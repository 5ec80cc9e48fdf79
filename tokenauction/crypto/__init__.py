"""
Accounts, addresses and hashing for the local chain.

Keys live on secp256k1 (py-ecc), hashes are Keccak-256 (pycryptodome),
and addresses follow the Ethereum derivation so that externally generated
keys map to the same accounts.

Addresses travel through the code base as lower-case ``0x`` strings.
Mixed-case EIP-55 forms are produced only for display, and every address
coming in from outside goes through ``normalize_address`` first.
"""

import secrets
import string
from dataclasses import dataclass

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

CURVE_ORDER = secp256k1.N
KEY_SIZE = 32
PUBLIC_KEY_SIZE = 64

ADDRESS_SIZE = 20
ZERO_ADDRESS = "0x" + "00" * ADDRESS_SIZE

_HEX_CHARS = frozenset(string.hexdigits)


# =============================================================================
# Hashing
# =============================================================================


def keccak256(data: bytes) -> bytes:
    """Keccak-256 digest (the pre-standard SHA-3 variant)."""
    return keccak.new(data=data, digest_bits=256).digest()


def event_topic(signature: str) -> str:
    """
    Topic hash for an event signature, e.g.
    ``event_topic("Transfer(address,address,uint256)")``.
    """
    return bytes_to_hex(keccak256(signature.encode("utf-8")))


# =============================================================================
# Accounts
# =============================================================================


@dataclass
class KeyPair:
    """
    Account keys.

    Attributes:
        private_key: big-endian scalar in [1, N-1], KEY_SIZE bytes
        public_key: x || y of the curve point, without the 0x04 marker
    """
    private_key: bytes
    public_key: bytes

    @property
    def address(self) -> str:
        return address_from_public_key(self.public_key)


def generate_keypair() -> KeyPair:
    """Fresh account from the OS random source."""
    scalar = 1 + secrets.randbelow(CURVE_ORDER - 1)
    private_key = scalar.to_bytes(KEY_SIZE, "big")
    return KeyPair(private_key, private_key_to_public_key(private_key))


def private_key_to_public_key(private_key: bytes) -> bytes:
    if len(private_key) != KEY_SIZE:
        raise ValueError(f"Private key must be {KEY_SIZE} bytes")

    x, y = secp256k1.privtopub(private_key)
    return x.to_bytes(KEY_SIZE, "big") + y.to_bytes(KEY_SIZE, "big")


# =============================================================================
# Addresses
# =============================================================================


def address_from_public_key(public_key: bytes) -> str:
    """Last 20 bytes of keccak256(public_key)."""
    if len(public_key) != PUBLIC_KEY_SIZE:
        raise ValueError(f"Public key must be {PUBLIC_KEY_SIZE} bytes")
    return bytes_to_hex(keccak256(public_key)[-ADDRESS_SIZE:])


def contract_address(deployer: str, nonce: int) -> str:
    """
    Address of the contract ``deployer`` creates with ``nonce``.

    Last 20 bytes of keccak256(deployer || nonce as 8 bytes). This is not
    the RLP rule mainnet uses, but it is deterministic and distinct for
    every (deployer, nonce) pair.
    """
    preimage = hex_to_bytes(normalize_address(deployer)) + nonce.to_bytes(8, "big")
    return bytes_to_hex(keccak256(preimage)[-ADDRESS_SIZE:])


def is_valid_address(address) -> bool:
    """``0x`` followed by exactly 40 hex digits, in any case."""
    return (
        isinstance(address, str)
        and len(address) == 2 + 2 * ADDRESS_SIZE
        and address.startswith("0x")
        and all(char in _HEX_CHARS for char in address[2:])
    )


def normalize_address(address: str) -> str:
    """
    Canonical lower-case form.

    Raises:
        ValueError: if ``address`` is not a 20-byte hex address
    """
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return address.lower()


def is_zero_address(address: str) -> bool:
    return normalize_address(address) == ZERO_ADDRESS


def to_checksum_address(address: str) -> str:
    """EIP-55 display form."""
    hex_address = normalize_address(address)[2:]
    nibbles = keccak256(hex_address.encode("ascii")).hex()
    return "0x" + "".join(
        char.upper() if int(nibble, 16) >= 8 else char
        for char, nibble in zip(hex_address, nibbles)
    )


# =============================================================================
# Hex helpers
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Accepts an optional ``0x``/``0X`` prefix."""
    if hex_str[:2] in ("0x", "0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)
