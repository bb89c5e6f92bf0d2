"""
Aggregation coordinator: package two verified claims for the heavy prover.

The coordinator only checks that the two claims fit together (same identity,
same claim hash, both built under the live aggregate nonce against the
published config) before handing them to the external process. It does not
re-verify the inner proofs, and ``finalize`` trusts the binding fields the
prover reports without verifying the aggregated artifact. Callers that need
that guarantee must check the artifact against the prover's verification key
themselves.
"""

from __future__ import annotations

import logging
import tempfile
import uuid
from enum import Enum
from pathlib import Path
from typing import Optional

import trio

from ..attestation.binder import Claim, ClaimBinder
from ..attestation.config import SCOPE_AGGREGATE
from ..attestation.exceptions import (
    BadgeError,
    ConfigMismatch,
    ConfigurationError,
    IdentityMismatch,
    NonceInvalid,
    ThresholdNotMet,
)
from ..attestation.nonce import NonceLedger
from ..attestation.published import ConfigStore
from ..attestation.snark.verifier import VerifiedProof
from ..attestation.statements import GenerationSignals, ProofKind, SocialSignals
from ..attestation.store import Store
from .constants import INPUT_PREFIX
from .errors import AggregationInputError
from .messages import AggregationRequest, ProofArtifact, ProofPayload
from .prover import ProverConfig, ensure_available, run_prover

logger = logging.getLogger(__name__)


class AggregationState(Enum):
    IDLE = "idle"
    INPUT_SERIALIZED = "input_serialized"
    EXTERNAL_PROCESS_RUNNING = "external_process_running"
    ARTIFACT_PARSED = "artifact_parsed"
    FAILED = "failed"


_TRANSITIONS = {
    AggregationState.IDLE: {AggregationState.INPUT_SERIALIZED, AggregationState.FAILED},
    AggregationState.INPUT_SERIALIZED: {
        AggregationState.EXTERNAL_PROCESS_RUNNING,
        AggregationState.FAILED,
    },
    AggregationState.EXTERNAL_PROCESS_RUNNING: {
        AggregationState.ARTIFACT_PARSED,
        AggregationState.FAILED,
    },
    AggregationState.ARTIFACT_PARSED: set(),
    AggregationState.FAILED: set(),
}


class AggregationJob:
    """Progress of one aggregation run."""

    def __init__(self, principal_id: str) -> None:
        self.id = uuid.uuid4().hex
        self.principal_id = principal_id
        self.state = AggregationState.IDLE
        self.artifact: Optional[ProofArtifact] = None
        self.error: Optional[BadgeError] = None
        self._finished = trio.Event()

    @property
    def done(self) -> bool:
        return self.state in (AggregationState.ARTIFACT_PARSED, AggregationState.FAILED)

    def advance(self, state: AggregationState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"invalid aggregation transition {self.state.value} -> {state.value}")
        logger.debug("Aggregation job %s: %s -> %s", self.id, self.state.value, state.value)
        self.state = state
        if self.done:
            self._finished.set()

    async def wait(self) -> Optional[ProofArtifact]:
        await self._finished.wait()
        return self.artifact


class AggregationCoordinator:
    def __init__(
        self,
        store: Store,
        prover: ProverConfig,
        config_store: Optional[ConfigStore] = None,
        binder: Optional[ClaimBinder] = None,
    ) -> None:
        self._store = store
        self._prover = prover
        self._config_store = config_store or ConfigStore(store)
        self._binder = binder or ClaimBinder(store, self._config_store)
        self._ledger = NonceLedger(store)

    def build_request(
        self,
        principal_id: str,
        generation: VerifiedProof,
        social: VerifiedProof,
        session_nonce: int,
    ) -> AggregationRequest:
        """
        Check that two verified claims can be aggregated.

        Raises:
            AggregationInputError: Wrong proof kinds or claim hash mismatch
            ThresholdNotMet: A claim is not qualifying
            IdentityMismatch: Identities disagree or are not the principal's
            ConfigMismatch: A claim was built against another config
            NonceInvalid: Inner nonces differ from the session nonce, or it
                is not a live aggregate nonce
        """
        if generation.kind is not ProofKind.GENERATION or social.kind is not ProofKind.SOCIAL:
            raise AggregationInputError("aggregation needs one generation and one social proof")
        gen = generation.signals
        soc = social.signals
        if not isinstance(gen, GenerationSignals) or not isinstance(soc, SocialSignals):
            raise AggregationInputError("proof signals do not match their proof kinds")

        if not gen.qualified or not soc.qualified:
            raise ThresholdNotMet("both claims must be qualifying")
        if gen.identity != soc.identity:
            raise IdentityMismatch("generation and social proofs carry different identities")
        if gen.claim_hash != soc.claim_hash:
            raise AggregationInputError(
                "Claim hashes must match across generation and social proofs"
            )
        if gen.nonce != session_nonce or soc.nonce != session_nonce:
            raise NonceInvalid("Inner proofs must carry the aggregate session nonce")

        principal = self._store.get_principal(principal_id)
        if principal is None or principal.identity != str(soc.identity):
            raise IdentityMismatch("Identity mismatch between proofs and principal")

        try:
            published = self._config_store.current()
        except ConfigurationError as exc:
            raise ConfigMismatch(f"Published config unavailable: {exc}") from exc
        if soc.root != published.verified_root or soc.min_threshold != published.min_threshold:
            raise ConfigMismatch("Social proof was built against a different config")
        if published.generation_config_hash is None:
            raise ConfigMismatch("No generation config hash published")
        if gen.config_hash != published.generation_config_hash:
            raise ConfigMismatch("Generation proof was built against a different config")

        if not self._ledger.peek(SCOPE_AGGREGATE, session_nonce):
            raise NonceInvalid("Unknown or reused aggregate session nonce")

        request = AggregationRequest(
            generation=ProofPayload(generation.proof, generation.public_signals),
            social=ProofPayload(social.proof, social.public_signals),
            session_nonce=session_nonce,
            verified_root=published.verified_root,
            min_verified_needed=published.min_threshold,
            target_generation_id=gen.target_generation_id,
            self_nullifier=soc.identity,
            generation_claim_hash=gen.claim_hash,
            social_claim_hash=soc.claim_hash,
        )
        request.validate()
        return request

    async def aggregate(
        self,
        principal_id: str,
        generation: VerifiedProof,
        social: VerifiedProof,
        session_nonce: int,
        job: Optional[AggregationJob] = None,
    ) -> ProofArtifact:
        """
        Run the heavy prover over two verified claims.

        Raises:
            BindingError, AggregationInputError: Claims do not fit together
            ExternalProcessUnavailable: Prover not configured or missing
            ExternalProcessFailed: Prover errored, timed out or bad output
        """
        job = job or AggregationJob(principal_id)
        try:
            ensure_available(self._prover)
            request = self.build_request(principal_id, generation, social, session_nonce)
            with tempfile.TemporaryDirectory(prefix=INPUT_PREFIX) as tmp_dir:
                input_path = Path(tmp_dir) / "input.json"
                input_path.write_bytes(request.encode())
                job.advance(AggregationState.INPUT_SERIALIZED)

                job.advance(AggregationState.EXTERNAL_PROCESS_RUNNING)
                artifact = await run_prover(self._prover, input_path)
        except BadgeError as exc:
            job.error = exc
            job.advance(AggregationState.FAILED)
            logger.warning("Aggregation job %s failed: %s", job.id, exc)
            raise

        if artifact.metadata is not None and artifact.metadata.claim_hash != request.social_claim_hash:
            logger.warning("Aggregation job %s: artifact claim hash differs from request", job.id)
        job.artifact = artifact
        job.advance(AggregationState.ARTIFACT_PARSED)
        logger.info("Aggregation job %s produced artifact (vk_hash=%s)", job.id, artifact.vk_hash)
        return artifact

    def start(
        self,
        nursery: trio.Nursery,
        principal_id: str,
        generation: VerifiedProof,
        social: VerifiedProof,
        session_nonce: int,
    ) -> AggregationJob:
        """Run ``aggregate`` in ``nursery`` and return a job to poll or wait on."""
        job = AggregationJob(principal_id)
        nursery.start_soon(self._run_job, job, generation, social, session_nonce)
        return job

    async def _run_job(
        self,
        job: AggregationJob,
        generation: VerifiedProof,
        social: VerifiedProof,
        session_nonce: int,
    ) -> None:
        try:
            await self.aggregate(job.principal_id, generation, social, session_nonce, job)
        except BadgeError:
            # failure is recorded on the job
            pass

    def finalize(self, principal_id: str, artifact: ProofArtifact, session_nonce: int) -> Claim:
        """
        Bind an artifact's reported fields to the principal.

        Consumes the aggregate nonce. The artifact itself is not verified.
        """
        return self._binder.bind_aggregate(principal_id, artifact.attestation(), session_nonce)
