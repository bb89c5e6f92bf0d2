"""Badge attestation: identity accumulator, proof verification and claim binding."""

from .binder import AggregateAttestation, Claim, ClaimBinder
from .circuit_input import CircuitInput, pack
from .exceptions import (
    BadgeError,
    BindingError,
    CapacityExceeded,
    ConfigMismatch,
    ConfigurationError,
    CryptoVerificationFailed,
    DuplicateLeaf,
    ExternalProcessError,
    ExternalProcessFailed,
    ExternalProcessUnavailable,
    FormatError,
    IdentityMismatch,
    NonceInvalid,
    ThresholdNotMet,
)
from .hashing import DEFAULT_HASHER, FieldHasher, Sha256FieldHasher
from .inclusion import InclusionProofGenerator, InclusionProofs
from .merkle import AccumulatorSnapshot, IdentityAccumulator, ProofBundle, verify_path
from .nonce import NonceLedger
from .published import ConfigStore, PublishedConfig
from .service import BadgeService
from .settings import Settings, load_settings
from .statements import GenerationSignals, ProofKind, SocialSignals, decode_signals
from .store import Store

__all__ = [
    "AggregateAttestation",
    "Claim",
    "ClaimBinder",
    "CircuitInput",
    "pack",
    "BadgeError",
    "BindingError",
    "CapacityExceeded",
    "ConfigMismatch",
    "ConfigurationError",
    "CryptoVerificationFailed",
    "DuplicateLeaf",
    "ExternalProcessError",
    "ExternalProcessFailed",
    "ExternalProcessUnavailable",
    "FormatError",
    "IdentityMismatch",
    "NonceInvalid",
    "ThresholdNotMet",
    "DEFAULT_HASHER",
    "FieldHasher",
    "Sha256FieldHasher",
    "InclusionProofGenerator",
    "InclusionProofs",
    "AccumulatorSnapshot",
    "IdentityAccumulator",
    "ProofBundle",
    "verify_path",
    "NonceLedger",
    "ConfigStore",
    "PublishedConfig",
    "BadgeService",
    "Settings",
    "load_settings",
    "GenerationSignals",
    "ProofKind",
    "SocialSignals",
    "decode_signals",
    "Store",
]
