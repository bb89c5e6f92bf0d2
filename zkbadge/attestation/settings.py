"""
Runtime settings for the badge issuer.

Resolution order for every field: explicit keyword argument, then the
``ZKBADGE_*`` environment variable, then the YAML settings file, then the
default below.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Final, Mapping

import yaml

from .config import (
    DEFAULT_MERKLE_DEPTH,
    DEFAULT_MIN_THRESHOLD,
    DEFAULT_N_MAX,
    MAX_MERKLE_DEPTH,
)
from .exceptions import ConfigurationError

_ENV_PREFIX: Final[str] = "ZKBADGE_"
_SETTINGS_FILE_ENV: Final[str] = "ZKBADGE_SETTINGS_FILE"
_VALID_PROOF_MODES: Final[tuple[str, ...]] = ("execute", "compressed", "groth16")


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///zkbadge.db"
    merkle_depth: int = DEFAULT_MERKLE_DEPTH
    n_max: int = DEFAULT_N_MAX
    min_threshold: int = DEFAULT_MIN_THRESHOLD
    keys_dir: str = "circuits"
    snarkjs_command: tuple[str, ...] = ("snarkjs",)
    snarkjs_timeout: float = 60.0
    prover_command: tuple[str, ...] = field(default_factory=tuple)
    prover_mode: str = "compressed"
    prover_network: str | None = None
    prover_timeout: float = 7200.0
    strict_packing: bool = True

    def validate(self) -> "Settings":
        if not 0 < self.merkle_depth <= MAX_MERKLE_DEPTH:
            raise ConfigurationError(
                f"merkle_depth must be in 1..{MAX_MERKLE_DEPTH}, got {self.merkle_depth}"
            )
        if self.n_max <= 0:
            raise ConfigurationError(f"n_max must be positive, got {self.n_max}")
        if not 0 < self.min_threshold <= self.n_max:
            raise ConfigurationError(
                f"min_threshold must be in 1..{self.n_max}, got {self.min_threshold}"
            )
        if self.prover_mode not in _VALID_PROOF_MODES:
            raise ConfigurationError(
                f"Invalid prover_mode: {self.prover_mode!r}. "
                f"Valid options: {', '.join(_VALID_PROOF_MODES)}"
            )
        if not self.snarkjs_command:
            raise ConfigurationError("snarkjs_command cannot be empty")
        if self.snarkjs_timeout <= 0 or self.prover_timeout <= 0:
            raise ConfigurationError("timeouts must be positive")
        return self


def load_settings(path: str | Path | None = None, **overrides: Any) -> Settings:
    """
    Resolve settings from overrides, environment and an optional YAML file.

    Args:
        path: YAML settings file; defaults to ``$ZKBADGE_SETTINGS_FILE``.
        **overrides: Explicit field values (``None`` values are ignored).

    Raises:
        ConfigurationError: Unknown keys, bad values or unreadable file.
    """
    values: dict[str, Any] = {}
    values.update(_read_file(path or os.getenv(_SETTINGS_FILE_ENV)))
    values.update(_read_env(os.environ))
    values.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"Unknown settings: {', '.join(unknown)}")

    coerced = {name: _coerce(name, value) for name, value in values.items()}
    return replace(Settings(), **coerced).validate()


def _read_file(path: str | Path | None) -> dict[str, Any]:
    if not path:
        return {}
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Unable to read settings file {path}") from exc
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {path} must contain a mapping")
    return dict(data)


def _read_env(environ: Mapping[str, str]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for f in fields(Settings):
        raw = environ.get(_ENV_PREFIX + f.name.upper())
        if raw is None or raw == "":
            continue
        values[f.name] = raw
    return values


def _coerce(name: str, value: Any) -> Any:
    default = getattr(Settings(), name)
    try:
        if name in ("snarkjs_command", "prover_command"):
            if isinstance(value, str):
                return tuple(shlex.split(value))
            return tuple(str(part) for part in value)
        if name == "prover_network":
            return str(value)
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        return str(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}") from exc
