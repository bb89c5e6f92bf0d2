"""Aggregation error types."""

from ..attestation.exceptions import (
    ExternalProcessError,
    ExternalProcessFailed,
    ExternalProcessUnavailable,
    FormatError,
)


class AggregationInputError(FormatError):
    """Raised when the two claims cannot be packaged together."""


class ArtifactSchemaError(ExternalProcessFailed):
    """Raised when the prover's stdout is not a valid artifact."""


__all__ = [
    "AggregationInputError",
    "ArtifactSchemaError",
    "ExternalProcessError",
    "ExternalProcessFailed",
    "ExternalProcessUnavailable",
]
