"""
Hash functions and utilities for the referendum core.

Implements SHA-256 hashing on top of the ``cryptography`` primitives together
with an immutable 32-byte digest value type.
"""

import logging

logger = logging.getLogger(__name__)
from dataclasses import dataclass
from typing import Iterable, Union

from cryptography.hazmat.primitives import hashes

DIGEST_SIZE = 32


@dataclass(frozen=True)
class Hash:
    """Immutable hash value with comparison and string representation."""

    value: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.value, (bytes, bytearray)):
            raise ValueError("Hash value must be bytes")
        if len(self.value) != DIGEST_SIZE:
            raise ValueError("Hash must be exactly 32 bytes")
        object.__setattr__(self, "value", bytes(self.value))

    def __str__(self) -> str:
        return self.value.hex()

    def __repr__(self) -> str:
        return f"Hash('{self.value.hex()}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Hash):
            return False
        return self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    @classmethod
    def from_hex(cls, hex_string: str) -> "Hash":
        """Create a Hash from a hexadecimal string."""
        if hex_string.startswith("0x"):
            hex_string = hex_string[2:]
        return cls(bytes.fromhex(hex_string))

    @classmethod
    def coerce(cls, value: Union["Hash", bytes, bytearray, str]) -> "Hash":
        """Build a Hash from a Hash, raw digest bytes or a hex string."""
        if isinstance(value, Hash):
            return value
        if isinstance(value, str):
            return cls.from_hex(value)
        return cls(value)

    @classmethod
    def zero(cls) -> "Hash":
        """Create a zero hash (all zeros)."""
        return cls(b"\x00" * DIGEST_SIZE)

    def to_hex(self) -> str:
        """Convert hash to hexadecimal string."""
        return self.value.hex()


class SHA256Hasher:
    """SHA-256 hasher backed by ``cryptography``."""

    @staticmethod
    def hash(data: Union[bytes, str]) -> Hash:
        """
        Hash data using SHA-256.

        Args:
            data: Data to hash (bytes or string)

        Returns:
            Hash object containing the SHA-256 hash
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        digest = hashes.Hash(hashes.SHA256())
        digest.update(data)
        return Hash(digest.finalize())

    @staticmethod
    def hash_list(items: Iterable[Union[bytes, str]]) -> Hash:
        """
        Hash a sequence of items by feeding them to one digest in order.

        Args:
            items: Items to hash

        Returns:
            Hash of the concatenated items
        """
        digest = hashes.Hash(hashes.SHA256())
        for item in items:
            if isinstance(item, str):
                item = item.encode("utf-8")
            digest.update(item)
        return Hash(digest.finalize())
