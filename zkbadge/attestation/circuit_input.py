"""
Pack inclusion proofs into the social circuit's fixed-arity input.

The circuit takes exactly ``n_max`` slots, each with a leaf, a presence flag
and a ``depth``-long sibling path. Unused slots carry the zero leaf, presence
0 and an all-zero-leaf path.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .config import is_field_element
from .exceptions import CapacityExceeded, DuplicateLeaf, FormatError
from .merkle import ProofBundle


@dataclass(frozen=True)
class CircuitInput:
    leaves: Tuple[int, ...]
    presence: Tuple[int, ...]
    siblings: Tuple[Tuple[int, ...], ...]
    path_bits: Tuple[Tuple[int, ...], ...]

    @property
    def n_max(self) -> int:
        return len(self.leaves)

    @property
    def count(self) -> int:
        return sum(self.presence)

    def to_circuit_json(
        self,
        identity: int,
        nonce: int,
        root: int,
        min_threshold: int,
    ) -> dict:
        """Full witness input keyed by the circuit's signal names."""
        return {
            "selfNullifier": str(identity),
            "sessionNonce": str(nonce),
            "verifiedRoot": str(root),
            "minVerifiedNeeded": str(min_threshold),
            "followeeLeaves": [str(leaf) for leaf in self.leaves],
            "followeeIsPresent": [str(flag) for flag in self.presence],
            "merkleSiblings": [[str(s) for s in path] for path in self.siblings],
            "merklePathBits": [[str(b) for b in bits] for bits in self.path_bits],
        }


def _pad(values: Sequence[int], depth: int, fill: int) -> Tuple[int, ...]:
    padded = list(values[:depth])
    padded.extend([fill] * (depth - len(padded)))
    return tuple(padded)


def pack(
    bundles: Iterable[ProofBundle],
    n_max: int,
    depth: int,
    zero_leaf: int,
    *,
    strict: bool = True,
) -> CircuitInput:
    """
    Build a ``CircuitInput`` from inclusion proofs.

    Args:
        bundles: Proofs for the claimed identities, in slot order
        n_max: Circuit arity
        depth: Merkle depth the circuit expects
        zero_leaf: Padding leaf
        strict: Raise instead of truncating when more than ``n_max`` proofs

    Raises:
        CapacityExceeded: More than ``n_max`` proofs with ``strict``
        DuplicateLeaf: The same leaf in two present slots
        FormatError: Non-field values or path bits other than 0/1
    """
    if n_max <= 0 or depth <= 0:
        raise FormatError("n_max and depth must be positive")

    items = list(bundles)
    if len(items) > n_max:
        if strict:
            raise CapacityExceeded(
                f"{len(items)} inclusion proofs exceed circuit capacity {n_max}"
            )
        items = items[:n_max]

    leaves: List[int] = []
    presence: List[int] = []
    siblings: List[Tuple[int, ...]] = []
    path_bits: List[Tuple[int, ...]] = []
    seen: set[int] = set()

    for idx, bundle in enumerate(items):
        if not is_field_element(bundle.leaf):
            raise FormatError(f"slot {idx}: leaf is not a field element")
        if bundle.leaf in seen:
            raise DuplicateLeaf(f"slot {idx}: leaf already present in an earlier slot")
        seen.add(bundle.leaf)

        path = _pad(bundle.siblings, depth, zero_leaf)
        bits = _pad(bundle.path_bits, depth, 0)
        if not all(is_field_element(s) for s in path):
            raise FormatError(f"slot {idx}: sibling is not a field element")
        if any(b not in (0, 1) for b in bits):
            raise FormatError(f"slot {idx}: path bits must be 0 or 1")

        leaves.append(bundle.leaf)
        presence.append(1)
        siblings.append(path)
        path_bits.append(bits)

    empty_path = tuple([zero_leaf] * depth)
    empty_bits = tuple([0] * depth)
    while len(leaves) < n_max:
        leaves.append(zero_leaf)
        presence.append(0)
        siblings.append(empty_path)
        path_bits.append(empty_bits)

    return CircuitInput(
        leaves=tuple(leaves),
        presence=tuple(presence),
        siblings=tuple(siblings),
        path_bits=tuple(path_bits),
    )
