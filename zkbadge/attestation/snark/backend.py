"""Groth16 verification backends."""

from __future__ import annotations

import json
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_VERIFY_TIMEOUT = 60


class Groth16Backend(Protocol):
    def verify(
        self,
        verification_key: Mapping[str, Any],
        public_signals: Sequence[str],
        proof: Mapping[str, Any],
    ) -> bool:
        ...


class SnarkjsBackend:
    """Verify snarkjs-format Groth16 proofs with the snarkjs CLI."""

    def __init__(
        self,
        command: Sequence[str] = ("snarkjs",),
        timeout: float = DEFAULT_VERIFY_TIMEOUT,
    ) -> None:
        if not command:
            raise ConfigurationError("snarkjs command cannot be empty")
        self._command = tuple(command)
        self._timeout = timeout

    def verify(
        self,
        verification_key: Mapping[str, Any],
        public_signals: Sequence[str],
        proof: Mapping[str, Any],
    ) -> bool:
        with tempfile.TemporaryDirectory(prefix="zkbadge-verify-") as tmp_dir:
            vk_path = Path(tmp_dir) / "verification_key.json"
            public_path = Path(tmp_dir) / "public.json"
            proof_path = Path(tmp_dir) / "proof.json"
            vk_path.write_text(json.dumps(verification_key), encoding="utf-8")
            public_path.write_text(json.dumps(list(public_signals)), encoding="utf-8")
            proof_path.write_text(json.dumps(proof), encoding="utf-8")

            command = [
                *self._command,
                "groth16",
                "verify",
                str(vk_path),
                str(public_path),
                str(proof_path),
            ]
            try:
                result = subprocess.run(
                    command,
                    capture_output=True,
                    text=True,
                    check=False,
                    timeout=self._timeout,
                )
            except FileNotFoundError as exc:
                raise ConfigurationError(
                    f"snarkjs executable not found: {self._command[0]}"
                ) from exc

        if result.returncode == 0 and "OK" in result.stdout:
            return True
        logger.warning(
            "snarkjs rejected proof (exit %d): %s",
            result.returncode,
            (result.stderr or result.stdout).strip()[:200],
        )
        return False
