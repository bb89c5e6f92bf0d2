"""
Bind verified proofs to principals and persist badges.

Every bind runs in one transaction with ordered, fail-closed checks:

1. the circuit's qualifying flag is set,
2. root / threshold / config hash match the published config,
3. the session nonce is consumed in the proof kind's scope,
4. the proof identity is the principal's stored identity,
5. the claim is upserted and the badge fields updated.

A failing check raises and rolls the whole transaction back, including the
nonce deletion. A proof that does not meet its threshold therefore leaves the
nonce available for a retry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .config import SCOPE_AGGREGATE
from .exceptions import (
    ConfigMismatch,
    ConfigurationError,
    IdentityMismatch,
    NonceInvalid,
    ThresholdNotMet,
)
from .nonce import NonceLedger
from .published import ConfigStore, PublishedConfig
from .snark.verifier import VerifiedProof
from .statements import GenerationSignals, SocialSignals, get_layout
from .store import ClaimRecord, Principal, Store, utcnow

logger = logging.getLogger(__name__)

AGGREGATE_KIND = "aggregate"


@dataclass(frozen=True)
class Claim:
    kind: str
    public_signals: tuple
    principal_id: str
    claim_hash: int
    verified_at: datetime


@dataclass(frozen=True)
class AggregateAttestation:
    """Binding fields reported by the heavy-proof process."""

    identity: int
    generation_id: int
    social_level: int
    claim_hash: int
    public_values: str


class ClaimBinder:
    def __init__(self, store: Store, config_store: Optional[ConfigStore] = None) -> None:
        self._store = store
        self._config_store = config_store or ConfigStore(store)

    def bind(
        self,
        principal_id: str,
        verified: VerifiedProof,
        config: Optional[PublishedConfig] = None,
    ) -> Claim:
        """
        Bind a verified proof to ``principal_id``.

        Raises:
            ThresholdNotMet, ConfigMismatch, NonceInvalid, IdentityMismatch
        """
        signals = verified.signals
        layout = get_layout(verified.kind)

        with self._store.session() as session:
            if not signals.qualified:
                raise ThresholdNotMet(f"{layout.kind.value} circuit did not meet its threshold")

            published = self._published(session, config)
            if isinstance(signals, SocialSignals):
                if signals.root != published.verified_root:
                    raise ConfigMismatch("Verified root mismatch")
                if signals.min_threshold != published.min_threshold:
                    raise ConfigMismatch("Threshold mismatch")
            elif isinstance(signals, GenerationSignals):
                if published.generation_config_hash is None:
                    raise ConfigMismatch("No generation config hash published")
                if signals.config_hash != published.generation_config_hash:
                    raise ConfigMismatch("Generation config hash mismatch")

            if not NonceLedger.consume(session, layout.nonce_scope, signals.nonce):
                raise NonceInvalid("Unknown or reused session nonce")

            principal = self._bound_principal(session, principal_id, signals.identity)
            now = utcnow()
            if isinstance(signals, SocialSignals):
                principal.social_level = published.min_threshold
                principal.social_claim_hash = str(signals.claim_hash)
                principal.social_verified_at = now
            else:
                stored = principal.birth_year_commitment
                if stored is not None and stored != str(signals.birth_year_commitment):
                    raise IdentityMismatch("Birth year commitment mismatch")
                principal.birth_year_commitment = str(signals.birth_year_commitment)
                principal.generation_id = signals.target_generation_id
                principal.generation_claim_hash = str(signals.claim_hash)

            claim = self._upsert_claim(
                session,
                principal_id,
                layout.kind.value,
                list(verified.public_signals),
                signals.claim_hash,
                now,
            )

        logger.info(
            "Bound %s claim for principal %s (config v%d)",
            claim.kind,
            principal_id,
            published.version,
        )
        return claim

    def bind_aggregate(
        self,
        principal_id: str,
        attestation: AggregateAttestation,
        session_nonce: int,
        config: Optional[PublishedConfig] = None,
    ) -> Claim:
        """
        Bind an aggregated artifact's fields to ``principal_id``.

        The aggregated proof itself is not verified here.
        """
        with self._store.session() as session:
            published = self._published(session, config)
            if attestation.social_level != published.min_threshold:
                raise ConfigMismatch("Aggregated social level does not match threshold")

            if not NonceLedger.consume(session, SCOPE_AGGREGATE, session_nonce):
                raise NonceInvalid("Session nonce already used or unknown")

            principal = self._bound_principal(session, principal_id, attestation.identity)
            now = utcnow()
            principal.generation_id = attestation.generation_id
            principal.generation_claim_hash = str(attestation.claim_hash)
            principal.social_level = attestation.social_level
            principal.social_claim_hash = str(attestation.claim_hash)
            principal.social_verified_at = now

            claim = self._upsert_claim(
                session,
                principal_id,
                AGGREGATE_KIND,
                [
                    str(attestation.identity),
                    str(attestation.generation_id),
                    str(attestation.social_level),
                    str(attestation.claim_hash),
                    attestation.public_values,
                ],
                attestation.claim_hash,
                now,
            )

        logger.info("Bound aggregate claim for principal %s", principal_id)
        return claim

    def _published(
        self, session: Session, config: Optional[PublishedConfig]
    ) -> PublishedConfig:
        if config is not None:
            return config
        try:
            return self._config_store.current(session)
        except ConfigurationError as exc:
            raise ConfigMismatch(f"Published config unavailable: {exc}") from exc

    @staticmethod
    def _bound_principal(session: Session, principal_id: str, identity: int) -> Principal:
        principal = session.get(Principal, principal_id)
        if principal is None:
            raise IdentityMismatch("Principal not found for proof submission")
        if principal.identity is None:
            raise IdentityMismatch("Principal has no stored identity")
        if principal.identity != str(identity):
            raise IdentityMismatch("Identity mismatch between proof and principal")
        return principal

    @staticmethod
    def _upsert_claim(
        session: Session,
        principal_id: str,
        kind: str,
        public_signals: List[str],
        claim_hash: int,
        verified_at: datetime,
    ) -> Claim:
        record = session.scalars(
            select(ClaimRecord).where(
                ClaimRecord.principal_id == principal_id, ClaimRecord.kind == kind
            )
        ).first()
        if record is None:
            record = ClaimRecord(principal_id=principal_id, kind=kind)
            session.add(record)
        record.public_signals = public_signals
        record.claim_hash = str(claim_hash)
        record.verified_at = verified_at
        return Claim(
            kind=kind,
            public_signals=tuple(public_signals),
            principal_id=principal_id,
            claim_hash=claim_hash,
            verified_at=verified_at,
        )
