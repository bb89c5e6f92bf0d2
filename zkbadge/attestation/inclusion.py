"""Inclusion proofs for the identities a principal relates to."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .config import HUMAN_STATUS_VERIFIED
from .merkle import AccumulatorSnapshot, ProofBundle
from .store import Store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InclusionProofs:
    leaves: Tuple[int, ...]
    siblings: Tuple[Tuple[int, ...], ...]
    path_indices: Tuple[Tuple[int, ...], ...]

    @property
    def count(self) -> int:
        return len(self.leaves)

    def bundles(self) -> List[ProofBundle]:
        return [
            ProofBundle(leaf=leaf, siblings=siblings, path_bits=bits)
            for leaf, siblings, bits in zip(self.leaves, self.siblings, self.path_indices)
        ]

    def to_dict(self) -> dict:
        return {
            "leaves": [str(leaf) for leaf in self.leaves],
            "siblings": [[str(s) for s in path] for path in self.siblings],
            "pathIndices": [list(bits) for bits in self.path_indices],
            "count": self.count,
        }


def _fit(values: Iterable[int], depth: int, fill: int) -> Tuple[int, ...]:
    fitted = list(values)[:depth]
    fitted.extend([fill] * (depth - len(fitted)))
    return tuple(fitted)


class InclusionProofGenerator:
    def __init__(self, store: Store) -> None:
        self._store = store

    def proofs_for(
        self,
        principal_id: str,
        snapshot: AccumulatorSnapshot,
        claimed_identities: Optional[Iterable[int]] = None,
    ) -> InclusionProofs:
        """
        Build one inclusion proof per usable claimed identity.

        An identity is usable when the principal relates to it, its owner is
        verified, and its leaf is in ``snapshot``. Other identities are
        skipped. Order is preserved and duplicates are kept. With no
        ``claimed_identities``, every verified relation is used.
        """
        relations = self._store.relation_identities(principal_id)
        if claimed_identities is None:
            claimed = [
                identity
                for identity, status in relations.items()
                if status == HUMAN_STATUS_VERIFIED
            ]
        else:
            claimed = list(claimed_identities)

        leaves: List[int] = []
        siblings: List[Tuple[int, ...]] = []
        path_indices: List[Tuple[int, ...]] = []
        for identity in claimed:
            if relations.get(identity) != HUMAN_STATUS_VERIFIED:
                logger.debug("Skipping identity not related or not verified")
                continue
            bundle = snapshot.prove_inclusion(snapshot.leaf_for(identity))
            if bundle is None:
                logger.debug("Skipping identity absent from accumulator snapshot")
                continue
            leaves.append(bundle.leaf)
            siblings.append(_fit(bundle.siblings, snapshot.depth, snapshot.zero_leaf))
            path_indices.append(_fit(bundle.path_bits, snapshot.depth, 0))

        logger.info(
            "Inclusion proofs for principal %s: %d of %d claimed",
            principal_id,
            len(leaves),
            len(claimed),
        )
        return InclusionProofs(
            leaves=tuple(leaves),
            siblings=tuple(siblings),
            path_indices=tuple(path_indices),
        )
