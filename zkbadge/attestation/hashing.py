"""
Field hash primitive for the identity accumulator.

Uses SHA-256 with domain separation, reduced into the BN254 scalar field.
Deployments whose circuit hashes with Poseidon inject their own
``FieldHasher`` into the accumulator; every other component takes the hasher
from the snapshot it works on.
"""

from __future__ import annotations

import hashlib
from typing import Protocol

from .config import DOMAIN_SEPARATORS, FIELD_ELEMENT_BYTES, FIELD_MODULUS


class FieldHasher(Protocol):
    name: str

    def hash1(self, value: int) -> int:
        ...

    def hash2(self, left: int, right: int) -> int:
        ...


def to_field_bytes(value: int) -> bytes:
    """
    Encode a field element as 32 big-endian bytes.

    Raises:
        ValueError: If the value is outside [0, FIELD_MODULUS)
    """
    if value < 0 or value >= FIELD_MODULUS:
        raise ValueError(f"value {value} is not a field element")
    return value.to_bytes(FIELD_ELEMENT_BYTES, byteorder="big")


class Sha256FieldHasher:
    """Domain-separated SHA-256 mapped into the field."""

    name = "sha256-bn254"

    def __init__(
        self,
        leaf_domain: bytes = DOMAIN_SEPARATORS["leaf"],
        node_domain: bytes = DOMAIN_SEPARATORS["node"],
    ) -> None:
        if leaf_domain == node_domain:
            raise ValueError("leaf and node domains must differ")
        self._leaf_domain = leaf_domain
        self._node_domain = node_domain

    def hash1(self, value: int) -> int:
        digest = hashlib.sha256(self._leaf_domain + to_field_bytes(value)).digest()
        return int.from_bytes(digest, byteorder="big") % FIELD_MODULUS

    def hash2(self, left: int, right: int) -> int:
        # Fixed left||right ordering
        digest = hashlib.sha256(
            self._node_domain + to_field_bytes(left) + to_field_bytes(right)
        ).digest()
        return int.from_bytes(digest, byteorder="big") % FIELD_MODULUS


DEFAULT_HASHER = Sha256FieldHasher()
