"""Cryptographic primitives for the referendum core."""

from .commitment import (
    DOMAIN_TAG,
    commitment_digest,
    encode_commitment,
    generate_salt,
    salt_length,
)
from .hashing import DIGEST_SIZE, Hash, SHA256Hasher

__all__ = [
    "DIGEST_SIZE",
    "DOMAIN_TAG",
    "Hash",
    "SHA256Hasher",
    "commitment_digest",
    "encode_commitment",
    "generate_salt",
    "salt_length",
]
