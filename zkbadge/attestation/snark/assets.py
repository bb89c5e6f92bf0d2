"""Resolve verification key paths with fallbacks."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable

MAX_VK_BYTES = 1024 * 1024


def resolve_vk(kind: str, keys_dir: str | Path | None = None) -> Path:
    """
    Resolve the verification key for a proof kind.

    Candidates, in order:
        <keys_dir>/<kind>/verification_key.json
        <keys_dir>/<kind>_verification_key.json
        <keys_dir>/verification_key.json   (generation only)

    Raises:
        FileNotFoundError: No candidate exists
    """
    base_dir = Path(keys_dir) if keys_dir else _default_keys_dir()
    candidates = [
        base_dir / kind / "verification_key.json",
        base_dir / f"{kind}_verification_key.json",
    ]
    if kind == "generation":
        candidates.append(base_dir / "verification_key.json")
    return _first_existing(candidates, f"{kind} verification key")


def _default_keys_dir() -> Path:
    return Path(os.getenv("ZKBADGE_KEYS_DIR", "circuits"))


def _first_existing(candidates: Iterable[Path], label: str) -> Path:
    candidates = list(candidates)
    for path in candidates:
        if path.is_file():
            return path
    raise FileNotFoundError(
        f"Unable to resolve {label}. Checked: {', '.join(str(p) for p in candidates)}"
    )
