"""
Proof verifier: shape checks, cached verification keys, typed decoding.

The pairing check itself is delegated to a ``Groth16Backend``. Malformed
public signals are rejected with ``FormatError`` before the backend runs; a
backend ``False`` becomes ``CryptoVerificationFailed``.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

from ..exceptions import ConfigurationError, CryptoVerificationFailed, FormatError
from ..statements import ProofKind, TypedSignals, decode_signals, get_layout
from .assets import MAX_VK_BYTES, resolve_vk
from .backend import Groth16Backend

logger = logging.getLogger(__name__)

KeyLoader = Callable[[ProofKind], Mapping[str, Any]]


@dataclass(frozen=True)
class VerifiedProof:
    """A proof that passed verification, with its decoded signals."""

    kind: ProofKind
    proof: Mapping[str, Any]
    public_signals: Tuple[str, ...]
    signals: TypedSignals


def load_key_file(path: Path) -> Mapping[str, Any]:
    if path.stat().st_size > MAX_VK_BYTES:
        raise ConfigurationError(f"verification key too large: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"verification key is not valid JSON: {path}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"verification key must be a JSON object: {path}")
    return data


def directory_key_loader(keys_dir: str | Path | None = None) -> KeyLoader:
    def _load(kind: ProofKind) -> Mapping[str, Any]:
        try:
            path = resolve_vk(kind.value, keys_dir)
        except FileNotFoundError as exc:
            raise ConfigurationError(str(exc)) from exc
        key = load_key_file(path)
        logger.info("Loaded %s verification key from %s", kind.value, path)
        return key

    return _load


class ProofVerifier:
    """Verify proofs for every registered kind."""

    def __init__(self, backend: Groth16Backend, key_loader: Optional[KeyLoader] = None) -> None:
        self._backend = backend
        self._key_loader = key_loader or directory_key_loader()
        self._keys: Dict[ProofKind, Mapping[str, Any]] = {}
        self._lock = threading.Lock()

    def verification_key(self, kind: ProofKind) -> Mapping[str, Any]:
        key = self._keys.get(kind)
        if key is not None:
            return key
        with self._lock:
            key = self._keys.get(kind)
            if key is None:
                key = self._key_loader(kind)
                self._keys[kind] = key
        return key

    def verify(
        self,
        kind: Union[ProofKind, str],
        proof: Any,
        public_signals: Sequence[Any],
    ) -> VerifiedProof:
        """
        Verify a proof and decode its public signals.

        Raises:
            FormatError: Unknown kind, malformed proof object or signals
            ConfigurationError: Verification key unavailable
            CryptoVerificationFailed: Backend rejected the proof
        """
        layout = get_layout(kind)
        if not isinstance(proof, Mapping):
            raise FormatError("proof must be a JSON object")
        signals = decode_signals(layout.kind, public_signals)
        canonical = tuple(str(getattr(signals, name)) for name in layout.fields)

        key = self.verification_key(layout.kind)
        if not self._backend.verify(key, list(canonical), dict(proof)):
            logger.warning("Rejected %s proof: verification failed", layout.kind.value)
            raise CryptoVerificationFailed(f"Invalid {layout.kind.value} proof")

        logger.info(
            "Verified %s proof (qualified=%s)", layout.kind.value, signals.qualified
        )
        return VerifiedProof(
            kind=layout.kind,
            proof=dict(proof),
            public_signals=canonical,
            signals=signals,
        )
