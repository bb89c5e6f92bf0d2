"""
Identity accumulator: fixed-depth binary hash tree over verified identities.

Every rebuild produces a new immutable ``AccumulatorSnapshot``. The
``IdentityAccumulator`` holder swaps its reference under a lock, so readers
holding an older snapshot never observe a half-built tree.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple

from .config import DEFAULT_MERKLE_DEPTH, MAX_MERKLE_DEPTH, is_field_element
from .hashing import DEFAULT_HASHER, FieldHasher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProofBundle:
    """
    Inclusion proof for one leaf.

    Attributes:
        leaf: Leaf hash
        siblings: Sibling hash per level, leaf level first
        path_bits: 1 where the running node is a right child
    """

    leaf: int
    siblings: Tuple[int, ...]
    path_bits: Tuple[int, ...]

    def to_dict(self) -> dict:
        return {
            "leaf": str(self.leaf),
            "siblings": [str(s) for s in self.siblings],
            "path_bits": list(self.path_bits),
        }


@dataclass(frozen=True)
class AccumulatorSnapshot:
    depth: int
    levels: Tuple[Tuple[int, ...], ...]
    zero_leaf: int
    leaf_count: int
    hasher: FieldHasher = field(repr=False, compare=False)
    _index: Mapping[int, int] = field(repr=False, compare=False)

    @property
    def root(self) -> int:
        return self.levels[self.depth][0]

    @property
    def leaves(self) -> Tuple[int, ...]:
        return self.levels[0][: self.leaf_count]

    def leaf_for(self, identity: int) -> int:
        return self.hasher.hash1(identity)

    def node(self, level: int, index: int) -> int:
        row = self.levels[level]
        if index < len(row):
            return row[index]
        return self.zero_leaf

    def contains(self, leaf: int) -> bool:
        return leaf in self._index

    def prove_inclusion(self, leaf: int) -> Optional[ProofBundle]:
        """
        Build the sibling path for a leaf.

        Returns:
            ProofBundle, or None if the leaf is not in the tree
        """
        index = self._index.get(leaf)
        if index is None:
            return None

        siblings: List[int] = []
        path_bits: List[int] = []
        current = index
        for level in range(self.depth):
            is_right = current % 2 == 1
            sibling_index = current - 1 if is_right else current + 1
            siblings.append(self.node(level, sibling_index))
            path_bits.append(1 if is_right else 0)
            current //= 2

        return ProofBundle(leaf=leaf, siblings=tuple(siblings), path_bits=tuple(path_bits))


def build_snapshot(
    identities: Iterable[int],
    depth: int = DEFAULT_MERKLE_DEPTH,
    hasher: FieldHasher = DEFAULT_HASHER,
) -> AccumulatorSnapshot:
    """
    Build a fixed-depth tree over a set of identities.

    Identities are deduplicated and sorted so the root only depends on the
    set. Odd rows are padded with the zero leaf; rows still wider than one
    node at ``depth`` are kept as the top level and the root is its first
    entry.

    Raises:
        ValueError: Invalid depth or identity outside the field
    """
    if not 0 < depth <= MAX_MERKLE_DEPTH:
        raise ValueError(f"depth must be in 1..{MAX_MERKLE_DEPTH}")

    unique = sorted(set(identities))
    for identity in unique:
        if not is_field_element(identity) or identity == 0:
            raise ValueError(f"invalid identity scalar: {identity!r}")

    zero_leaf = hasher.hash1(0)
    leaves = [hasher.hash1(identity) for identity in unique]

    capacity = 2 ** depth
    if len(leaves) > capacity:
        logger.warning(
            "Accumulator truncated: %d leaves exceed capacity %d at depth %d",
            len(leaves),
            capacity,
            depth,
        )

    current = list(leaves) if leaves else [zero_leaf]
    levels: List[Tuple[int, ...]] = []
    for level in range(depth + 1):
        if len(current) % 2 == 1:
            current.append(zero_leaf)
        levels.append(tuple(current))
        if level == depth:
            break
        next_level = [
            hasher.hash2(current[i], current[i + 1])
            for i in range(0, len(current), 2)
        ]
        current = next_level or [zero_leaf]

    # Only leaves under the root's subtree can be proven
    index: dict[int, int] = {}
    for i, leaf in enumerate(leaves[:capacity]):
        index.setdefault(leaf, i)

    return AccumulatorSnapshot(
        depth=depth,
        levels=tuple(levels),
        zero_leaf=zero_leaf,
        leaf_count=len(leaves),
        hasher=hasher,
        _index=MappingProxyType(index),
    )


def compute_root(bundle: ProofBundle, hasher: FieldHasher = DEFAULT_HASHER) -> int:
    """Recombine a bundle from its leaf up to the root it implies."""
    if len(bundle.siblings) != len(bundle.path_bits):
        raise ValueError("siblings and path_bits must have equal length")
    current = bundle.leaf
    for sibling, bit in zip(bundle.siblings, bundle.path_bits):
        if bit == 1:
            current = hasher.hash2(sibling, current)
        elif bit == 0:
            current = hasher.hash2(current, sibling)
        else:
            raise ValueError(f"path bit must be 0 or 1, got {bit!r}")
    return current


def verify_path(
    bundle: ProofBundle, root: int, hasher: FieldHasher = DEFAULT_HASHER
) -> bool:
    """
    Verify an inclusion proof against a root.

    Returns:
        True if the recombined root equals ``root``
    """
    try:
        return compute_root(bundle, hasher) == root
    except ValueError:
        return False


class IdentityAccumulator:
    """Holder for the current accumulator snapshot."""

    def __init__(
        self,
        depth: int = DEFAULT_MERKLE_DEPTH,
        hasher: FieldHasher = DEFAULT_HASHER,
    ) -> None:
        self._depth = depth
        self._hasher = hasher
        self._lock = threading.Lock()
        self._snapshot = build_snapshot((), depth, hasher)

    @property
    def depth(self) -> int:
        return self._depth

    @property
    def hasher(self) -> FieldHasher:
        return self._hasher

    def snapshot(self) -> AccumulatorSnapshot:
        return self._snapshot

    def build(self, identities: Iterable[int]) -> AccumulatorSnapshot:
        """Replace the snapshot with one built from ``identities`` and return it."""
        snapshot = build_snapshot(identities, self._depth, self._hasher)
        with self._lock:
            self._snapshot = snapshot
        logger.info(
            "Accumulator rebuilt: root=%s leaves=%d depth=%d",
            snapshot.root,
            snapshot.leaf_count,
            snapshot.depth,
        )
        return snapshot

    def rebuild(self, identities: Iterable[int]) -> int:
        """
        Replace the snapshot with one built from ``identities``.

        Returns:
            New root
        """
        return self.build(identities).root

    def root(self) -> int:
        return self._snapshot.root

    def zero_leaf(self) -> int:
        return self._snapshot.zero_leaf

    def prove_inclusion(self, leaf: int) -> Optional[ProofBundle]:
        return self._snapshot.prove_inclusion(leaf)
