"""JSON request/response schemas for the heavy-proof process."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from ..attestation.binder import AggregateAttestation
from ..attestation.config import GENERATION_NAMES, is_field_element
from .constants import MAX_STDOUT_BYTES
from .errors import AggregationInputError, ArtifactSchemaError


def _require_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ArtifactSchemaError(f"{key} must be a non-empty string")
    return value


def _require_int(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ArtifactSchemaError(f"{key} must be an integer")
    return value


def _require_scalar(data: Mapping[str, Any], key: str) -> int:
    raw = _require_str(data, key)
    if not raw.isdigit() or not is_field_element(int(raw)):
        raise ArtifactSchemaError(f"{key} must be a decimal field element")
    return int(raw)


@dataclass(frozen=True)
class ProofPayload:
    proof: Mapping[str, Any]
    public_signals: Tuple[str, ...]

    def to_json(self) -> Dict[str, Any]:
        # proof objects travel as JSON strings
        return {
            "proof": json.dumps(self.proof, sort_keys=True),
            "publicSignals": list(self.public_signals),
        }


@dataclass(frozen=True)
class AggregationRequest:
    generation: ProofPayload
    social: ProofPayload
    session_nonce: int
    verified_root: int
    min_verified_needed: int
    target_generation_id: int
    self_nullifier: int
    generation_claim_hash: int
    social_claim_hash: int

    def validate(self) -> None:
        for name in ("session_nonce", "verified_root", "self_nullifier",
                     "generation_claim_hash", "social_claim_hash"):
            if not is_field_element(getattr(self, name)):
                raise AggregationInputError(f"{name} must be a field element")
        if self.session_nonce == 0:
            raise AggregationInputError("session_nonce cannot be zero")
        if self.min_verified_needed <= 0:
            raise AggregationInputError("min_verified_needed must be positive")
        if not 0 <= self.target_generation_id < len(GENERATION_NAMES):
            raise AggregationInputError("target_generation_id out of range")
        if self.generation_claim_hash != self.social_claim_hash:
            raise AggregationInputError(
                "Claim hashes must match across generation and social proofs"
            )

    def to_json(self) -> Dict[str, Any]:
        self.validate()
        return {
            "generation": self.generation.to_json(),
            "social": self.social.to_json(),
            "session_nonce": str(self.session_nonce),
            "verified_root": str(self.verified_root),
            "min_verified_needed": self.min_verified_needed,
            "target_generation_id": self.target_generation_id,
            "self_nullifier": str(self.self_nullifier),
            "generation_claim_hash": str(self.generation_claim_hash),
            "social_claim_hash": str(self.social_claim_hash),
        }

    def encode(self) -> bytes:
        return json.dumps(self.to_json(), indent=2).encode("utf-8")


@dataclass(frozen=True)
class ArtifactMetadata:
    self_nullifier: int
    generation_id: int
    social_level: int
    claim_hash: int

    @classmethod
    def from_json(cls, data: Any) -> "ArtifactMetadata":
        if not isinstance(data, dict):
            raise ArtifactSchemaError("metadata must be an object")
        return cls(
            self_nullifier=_require_scalar(data, "self_nullifier"),
            generation_id=_require_int(data, "generation_id"),
            social_level=_require_int(data, "social_level"),
            claim_hash=_require_scalar(data, "claim_hash"),
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "self_nullifier": str(self.self_nullifier),
            "generation_id": self.generation_id,
            "social_level": self.social_level,
            "claim_hash": str(self.claim_hash),
        }


@dataclass(frozen=True)
class ProofArtifact:
    proof: str
    public_values: str
    vk_hash: str
    metadata: Optional[ArtifactMetadata] = None

    def attestation(self) -> AggregateAttestation:
        """
        Raises:
            ArtifactSchemaError: Artifact carries no binding metadata
        """
        if self.metadata is None:
            raise ArtifactSchemaError("artifact has no metadata to bind")
        return AggregateAttestation(
            identity=self.metadata.self_nullifier,
            generation_id=self.metadata.generation_id,
            social_level=self.metadata.social_level,
            claim_hash=self.metadata.claim_hash,
            public_values=self.public_values,
        )

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "proof": self.proof,
            "public_values": self.public_values,
            "vk_hash": self.vk_hash,
        }
        if self.metadata is not None:
            payload["metadata"] = self.metadata.to_json()
        return payload


def decode_artifact(stdout: bytes | str) -> ProofArtifact:
    """
    Parse the prover's stdout.

    Raises:
        ArtifactSchemaError: Oversized, non-JSON or missing fields
    """
    if isinstance(stdout, bytes):
        if len(stdout) > MAX_STDOUT_BYTES:
            raise ArtifactSchemaError("prover output too large")
        try:
            stdout = stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ArtifactSchemaError("prover output is not UTF-8") from exc
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as exc:
        raise ArtifactSchemaError(f"Failed to parse prover output: {stdout[:200]!r}") from exc
    if not isinstance(data, dict):
        raise ArtifactSchemaError("prover output must be a JSON object")

    metadata = data.get("metadata")
    return ProofArtifact(
        proof=_require_str(data, "proof"),
        public_values=_require_str(data, "public_values"),
        vk_hash=_require_str(data, "vk_hash"),
        metadata=ArtifactMetadata.from_json(metadata) if metadata is not None else None,
    )
