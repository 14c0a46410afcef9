"""
Commit-reveal digest.

The byte layout below is a wire contract shared by every client that
produces commitments; changing it invalidates every stored commitment.

    SHA-256( DOMAIN_TAG
           || choice byte             0x01 yes, 0x00 no
           || uint32 big-endian salt length  || salt
           || uint32 big-endian voter length || voter as UTF-8 )
"""

import secrets
import struct
from typing import Union

from .hashing import Hash, SHA256Hasher

DOMAIN_TAG = b"REFERENDUM-COMMIT-V1"

Salt = Union[bytes, bytearray, str]


def _salt_bytes(salt: Salt) -> bytes:
    if isinstance(salt, str):
        return salt.encode("utf-8")
    if isinstance(salt, (bytes, bytearray)):
        return bytes(salt)
    raise TypeError("salt must be bytes or str")


def encode_commitment(choice: bool, salt: Salt, voter: str) -> bytes:
    """Return the exact preimage hashed for a commitment."""
    if not isinstance(choice, bool):
        raise TypeError("choice must be a bool")
    if not isinstance(voter, str):
        raise TypeError("voter must be a str")
    salt_data = _salt_bytes(salt)
    voter_data = voter.encode("utf-8")
    return b"".join(
        [
            DOMAIN_TAG,
            b"\x01" if choice else b"\x00",
            struct.pack(">I", len(salt_data)),
            salt_data,
            struct.pack(">I", len(voter_data)),
            voter_data,
        ]
    )


def commitment_digest(choice: bool, salt: Salt, voter: str) -> Hash:
    """Compute H(choice, salt, voter)."""
    return SHA256Hasher.hash(encode_commitment(choice, salt, voter))


def salt_length(salt: Salt) -> int:
    return len(_salt_bytes(salt))


def generate_salt(size: int = 32) -> bytes:
    """Random salt for clients building commitments."""
    return secrets.token_bytes(size)
