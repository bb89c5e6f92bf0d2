"""Aggregation of a generation claim and a social claim by an external prover."""

from .coordinator import AggregationCoordinator, AggregationJob, AggregationState
from .errors import AggregationInputError, ArtifactSchemaError
from .messages import AggregationRequest, ProofArtifact, decode_artifact
from .prover import ProverConfig, run_prover

__all__ = [
    "AggregationCoordinator",
    "AggregationJob",
    "AggregationState",
    "AggregationInputError",
    "ArtifactSchemaError",
    "AggregationRequest",
    "ProofArtifact",
    "decode_artifact",
    "ProverConfig",
    "run_prover",
]
