"""
Badge issuance flows for one principal at a time.

``BadgeService`` wires the accumulator, the inclusion-proof generator, the
verifier and the binder together. Each ``*_context`` call issues a fresh
nonce of its kind and returns the published values a client needs to build
its proof.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Sequence, Union

from .binder import Claim, ClaimBinder
from .circuit_input import CircuitInput, pack
from .config import (
    GENERATION_NAMES,
    GENERATION_TABLE,
    LEAF_HASH_KIND,
    SCOPE_AGGREGATE,
    SCOPE_GENERATION,
    SCOPE_SOCIAL,
)
from .exceptions import ConfigurationError, IdentityMismatch
from .hashing import DEFAULT_HASHER, FieldHasher
from .inclusion import InclusionProofGenerator, InclusionProofs
from .merkle import AccumulatorSnapshot, IdentityAccumulator
from .nonce import NonceLedger
from .published import ConfigStore, PublishedConfig, generation_config_hash
from .settings import Settings
from .snark import ProofVerifier, SnarkjsBackend, directory_key_loader
from .statements import ProofKind
from .store import Store

logger = logging.getLogger(__name__)


class BadgeService:
    def __init__(
        self,
        store: Store,
        verifier: ProofVerifier,
        merkle_depth: int,
        min_threshold: int,
        n_max: int,
        hasher: FieldHasher = DEFAULT_HASHER,
        strict_packing: bool = True,
    ) -> None:
        self.store = store
        self.verifier = verifier
        self.accumulator = IdentityAccumulator(merkle_depth, hasher)
        self.config_store = ConfigStore(store)
        self.nonces = NonceLedger(store)
        self.binder = ClaimBinder(store, self.config_store)
        self.inclusion = InclusionProofGenerator(store)
        self._min_threshold = min_threshold
        self._n_max = n_max
        self._strict_packing = strict_packing
        self._published_snapshot: Optional[AccumulatorSnapshot] = None

    @classmethod
    def from_settings(
        cls, settings: Settings, hasher: FieldHasher = DEFAULT_HASHER
    ) -> "BadgeService":
        backend = SnarkjsBackend(settings.snarkjs_command, settings.snarkjs_timeout)
        verifier = ProofVerifier(backend, directory_key_loader(settings.keys_dir))
        service = cls(
            Store(settings.database_url),
            verifier,
            merkle_depth=settings.merkle_depth,
            min_threshold=settings.min_threshold,
            n_max=settings.n_max,
            hasher=hasher,
            strict_packing=settings.strict_packing,
        )
        service.rebuild()
        return service

    # ------------------------------------------------------------------
    # Accumulator and published config
    # ------------------------------------------------------------------

    def rebuild(self) -> int:
        """Rebuild the accumulator from verified identities without publishing."""
        return self.accumulator.rebuild(self.store.verified_identities())

    def publish_config(
        self,
        merkle_depth: Optional[int] = None,
        min_threshold: Optional[int] = None,
    ) -> PublishedConfig:
        """
        Rebuild the accumulator and publish its root.

        Raises:
            ConfigurationError: Depth differs from the accumulator's or bad values
        """
        depth = merkle_depth if merkle_depth is not None else self.accumulator.depth
        if depth != self.accumulator.depth:
            raise ConfigurationError(
                f"merkle_depth {depth} does not match accumulator depth {self.accumulator.depth}"
            )
        threshold = min_threshold if min_threshold is not None else self._min_threshold
        snapshot = self.accumulator.build(self.store.verified_identities())
        config = self.config_store.publish(
            verified_root=snapshot.root,
            merkle_depth=depth,
            min_threshold=threshold,
            generation_hash=generation_config_hash(self.accumulator.hasher),
        )
        self._published_snapshot = snapshot
        return config

    def published(self) -> PublishedConfig:
        return self.config_store.current()

    def published_snapshot(self) -> AccumulatorSnapshot:
        """
        Snapshot whose root is the published root.

        Falls back to the live accumulator when its root matches, so a
        freshly rebuilt service can serve a config published earlier.

        Raises:
            ConfigurationError: No config published, or no snapshot held for it
        """
        root = self.published().verified_root
        held = self._published_snapshot
        if held is not None and held.root == root:
            return held
        live = self.accumulator.snapshot()
        if live.root != root:
            raise ConfigurationError(
                "No accumulator snapshot for the published root; rebuild or publish"
            )
        logger.debug("Serving published root %s from the live accumulator", root)
        self._published_snapshot = live
        return live

    # ------------------------------------------------------------------
    # Proof contexts
    # ------------------------------------------------------------------

    def _identity(self, principal_id: str) -> int:
        principal = self.store.get_principal(principal_id)
        if principal is None:
            raise IdentityMismatch(f"Unknown principal {principal_id}")
        if principal.identity is None:
            raise IdentityMismatch("Principal has no stored identity")
        return int(principal.identity)

    def social_context(self, principal_id: str) -> dict:
        identity = self._identity(principal_id)
        config = self.published()
        nonce = self.nonces.issue(SCOPE_SOCIAL)
        return {
            "verified_root": str(config.verified_root),
            "merkle_depth": config.merkle_depth,
            "min_threshold": config.min_threshold,
            "session_nonce": str(nonce),
            "zero_leaf": str(self.accumulator.zero_leaf()),
            "identity": str(identity),
            "leaf_hash_kind": LEAF_HASH_KIND,
        }

    def generation_context(self, principal_id: str) -> dict:
        identity = self._identity(principal_id)
        config = self.published()
        if config.generation_config_hash is None:
            raise ConfigurationError("No generation config hash published")
        nonce = self.nonces.issue(SCOPE_GENERATION)
        return {
            "identity": str(identity),
            "generations": [
                {"id": gen_id, "name": GENERATION_NAMES[gen_id], "min_year": low, "max_year": high}
                for gen_id, low, high in GENERATION_TABLE
            ],
            "config_hash": str(config.generation_config_hash),
            "session_nonce": str(nonce),
        }

    def aggregate_context(self, principal_id: str) -> dict:
        identity = self._identity(principal_id)
        config = self.published()
        nonce = self.nonces.issue(SCOPE_AGGREGATE)
        return {
            "identity": str(identity),
            "social": {
                "verified_root": str(config.verified_root),
                "merkle_depth": config.merkle_depth,
                "min_threshold": config.min_threshold,
                "zero_leaf": str(self.accumulator.zero_leaf()),
            },
            "generation_config_hash": (
                str(config.generation_config_hash)
                if config.generation_config_hash is not None
                else None
            ),
            "session_nonce": str(nonce),
        }

    # ------------------------------------------------------------------
    # Proof data and verification
    # ------------------------------------------------------------------

    def proof_data(
        self,
        principal_id: str,
        claimed_identities: Optional[Iterable[int]] = None,
    ) -> InclusionProofs:
        return self.inclusion.proofs_for(
            principal_id, self.published_snapshot(), claimed_identities
        )

    def pack_input(
        self,
        principal_id: str,
        claimed_identities: Optional[Iterable[int]] = None,
    ) -> CircuitInput:
        snapshot = self.published_snapshot()
        proofs = self.inclusion.proofs_for(principal_id, snapshot, claimed_identities)
        return pack(
            proofs.bundles(),
            self._n_max,
            snapshot.depth,
            snapshot.zero_leaf,
            strict=self._strict_packing,
        )

    def verify(
        self,
        principal_id: str,
        kind: Union[ProofKind, str],
        proof: Any,
        public_signals: Sequence[Any],
    ) -> Claim:
        """
        Verify a proof and bind it to ``principal_id``.

        Raises:
            FormatError, CryptoVerificationFailed, ConfigurationError,
            ThresholdNotMet, ConfigMismatch, NonceInvalid, IdentityMismatch
        """
        verified = self.verifier.verify(kind, proof, public_signals)
        return self.binder.bind(principal_id, verified)
