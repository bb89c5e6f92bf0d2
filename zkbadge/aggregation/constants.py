"""Constants for the heavy-proof aggregation boundary."""

from __future__ import annotations

PROOF_MODES = frozenset({"execute", "compressed", "groth16"})
DEFAULT_PROOF_MODE = "compressed"

DEFAULT_PROVER_TIMEOUT = 2 * 60 * 60

MAX_STDOUT_BYTES = 16 * 1024 * 1024
MAX_ERROR_CHARS = 256

INPUT_PREFIX = "zkbadge-aggregate-"
