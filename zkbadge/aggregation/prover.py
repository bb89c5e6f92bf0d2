"""External heavy-proof process invocation."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

import trio

from ..attestation.settings import Settings
from .constants import (
    DEFAULT_PROOF_MODE,
    DEFAULT_PROVER_TIMEOUT,
    MAX_ERROR_CHARS,
    PROOF_MODES,
)
from .errors import ExternalProcessFailed, ExternalProcessUnavailable
from .messages import ProofArtifact, decode_artifact

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProverConfig:
    command: Tuple[str, ...] = ()
    mode: str = DEFAULT_PROOF_MODE
    network: Optional[str] = None
    timeout: float = DEFAULT_PROVER_TIMEOUT

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProverConfig":
        return cls(
            command=tuple(settings.prover_command),
            mode=settings.prover_mode,
            network=settings.prover_network,
            timeout=settings.prover_timeout,
        )


def ensure_available(config: ProverConfig) -> Tuple[str, ...]:
    """
    Check the prover command can be launched.

    Raises:
        ExternalProcessUnavailable: Not configured, missing or not executable
    """
    if not config.command:
        raise ExternalProcessUnavailable("prover command not configured (ZKBADGE_PROVER_COMMAND)")
    if config.mode not in PROOF_MODES:
        raise ExternalProcessUnavailable(f"unsupported proof mode: {config.mode!r}")

    executable = config.command[0]
    if os.sep in executable:
        path = Path(executable)
        if not path.is_file() or not os.access(path, os.X_OK):
            raise ExternalProcessUnavailable(f"prover executable not found: {executable}")
    elif shutil.which(executable) is None:
        raise ExternalProcessUnavailable(f"prover executable not on PATH: {executable}")
    return config.command


def build_command(config: ProverConfig, input_path: Path) -> List[str]:
    if config.mode == "execute":
        return [*config.command, "execute", str(input_path)]
    command = [*config.command, "prove", str(input_path)]
    if config.network:
        command.extend(["--network", config.network])
    command.extend(["--proof", config.mode])
    return command


async def run_prover(config: ProverConfig, input_path: Path) -> ProofArtifact:
    """
    Run the prover on a serialized request and parse its artifact.

    Raises:
        ExternalProcessUnavailable: Prover cannot be launched
        ExternalProcessFailed: Timeout, non-zero exit or bad output
    """
    ensure_available(config)
    command = build_command(config, input_path)
    logger.info("Spawning prover in %s mode", config.mode)

    started = trio.current_time()
    try:
        with trio.fail_after(config.timeout):
            result = await trio.run_process(
                command,
                capture_stdout=True,
                capture_stderr=True,
                check=False,
            )
    except trio.TooSlowError as exc:
        raise ExternalProcessFailed(
            f"prover timed out after {config.timeout:g}s"
        ) from exc
    except OSError as exc:
        raise ExternalProcessUnavailable(f"unable to launch prover: {exc}") from exc

    elapsed = trio.current_time() - started
    logger.info("Prover exited with code %d after %.1fs", result.returncode, elapsed)

    if result.returncode != 0:
        stderr = result.stderr.decode("utf-8", "replace").strip() or "unknown prover error"
        raise ExternalProcessFailed(
            f"prover exited with code {result.returncode}: {stderr[:MAX_ERROR_CHARS]}"
        )
    return decode_artifact(result.stdout)
