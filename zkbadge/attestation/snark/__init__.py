"""Groth16 verification: backends, key resolution and the proof verifier."""

from .backend import Groth16Backend, SnarkjsBackend
from .verifier import ProofVerifier, VerifiedProof, directory_key_loader

__all__ = [
    "Groth16Backend",
    "SnarkjsBackend",
    "ProofVerifier",
    "VerifiedProof",
    "directory_key_loader",
]
