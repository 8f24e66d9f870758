"""
Content addressing for directory values.

Every value written to the store (profile entries, path nodes, agent anchors)
is identified by the cryptographic hash of its canonical msgpack encoding.
Identical content always yields the identical address, which is what makes
`put` idempotent and lets any peer compute a well-known address (such as the
directory root) without asking anybody.
"""

import hashlib
from typing import Any
from dataclasses import dataclass
import logging

import msgpack

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Address:
    """Address of a value in the store (hash of its canonical encoding)."""
    hash_algorithm: str  # e.g., "sha256"
    hash_value: bytes    # Binary hash

    @property
    def hex(self) -> str:
        """Get hex representation of hash."""
        return self.hash_value.hex()

    @classmethod
    def from_hex(cls, hex_value: str, hash_algorithm: str = "sha256") -> "Address":
        """Rebuild an address from its hex form."""
        return cls(hash_algorithm=hash_algorithm, hash_value=bytes.fromhex(hex_value))

    def __str__(self) -> str:
        return self.hex

    def __repr__(self) -> str:
        return f"Address({self.hash_algorithm}:{self.hex[:16]}...)"


def canonicalize(value: Any) -> Any:
    """
    Normalize a value so that equal content always encodes to equal bytes.

    Dict keys are sorted recursively; tuples become lists.
    """
    if isinstance(value, dict):
        return {k: canonicalize(value[k]) for k in sorted(value)}
    if isinstance(value, (list, tuple)):
        return [canonicalize(v) for v in value]
    return value


def encode_value(value: Any) -> bytes:
    """Canonical msgpack encoding of a value."""
    return msgpack.packb(canonicalize(value), use_bin_type=True)


def decode_value(data: bytes) -> Any:
    """Inverse of encode_value."""
    return msgpack.unpackb(data, raw=False)


class AddressingEngine:
    """
    Computes addresses for store values.

    Uses cryptographic hashes to uniquely identify content:
    - same content = same address (natural deduplication)
    - address is location-independent (any peer can compute it)
    """

    def __init__(self, hash_algorithm: str = "sha256"):
        """
        Initialize addressing engine.

        Args:
            hash_algorithm: Hash algorithm to use (sha256, sha3_256, blake2b)
        """
        self.hash_algorithm = hash_algorithm

        self.hash_functions = {
            "sha256": hashlib.sha256,
            "sha3_256": hashlib.sha3_256,
            "blake2b": hashlib.blake2b,
        }

        if hash_algorithm not in self.hash_functions:
            raise ValueError(f"Unsupported hash algorithm: {hash_algorithm}")

        logger.debug(f"Initialized addressing with {hash_algorithm}")

    def address_of(self, value: Any) -> Address:
        """
        Compute the address of a value.

        Args:
            value: Any msgpack-serializable value

        Returns:
            Address derived from the canonical encoding
        """
        hash_func = self.hash_functions[self.hash_algorithm]
        return Address(
            hash_algorithm=self.hash_algorithm,
            hash_value=hash_func(encode_value(value)).digest(),
        )

    def verify(self, value: Any, address: Address) -> bool:
        """Check that a value hashes to the given address."""
        return self.address_of(value).hash_value == address.hash_value
