"""
Published configuration: the root, depth and threshold proofs are checked against.

Publishing is explicit. Rebuilding the accumulator never changes what is
published, so a proof built against the published root stays valid until the
next publish.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from .config import (
    CONFIG_GENERATION_HASH,
    CONFIG_MERKLE_DEPTH,
    CONFIG_MIN_THRESHOLD,
    CONFIG_VERIFIED_ROOT,
    CONFIG_VERSION,
    GENERATION_TABLE,
    MAX_MERKLE_DEPTH,
    is_field_element,
)
from .exceptions import ConfigurationError
from .hashing import DEFAULT_HASHER, FieldHasher
from .store import Store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishedConfig:
    verified_root: int
    merkle_depth: int
    min_threshold: int
    generation_config_hash: Optional[int] = None
    version: int = 0

    def to_dict(self) -> dict:
        return {
            "verified_root": str(self.verified_root),
            "merkle_depth": self.merkle_depth,
            "min_threshold": self.min_threshold,
            "generation_config_hash": (
                str(self.generation_config_hash)
                if self.generation_config_hash is not None
                else None
            ),
            "version": self.version,
        }


def generation_config_hash(hasher: FieldHasher = DEFAULT_HASHER) -> int:
    """Fold the generation table into one field element."""
    acc = 0
    for row in GENERATION_TABLE:
        for value in row:
            acc = hasher.hash2(acc, value)
    return acc


def parse_config(values: Mapping[str, str]) -> PublishedConfig:
    """
    Parse raw config entries.

    Raises:
        ConfigurationError: Missing or invalid entry
    """
    def require(key: str) -> str:
        value = values.get(key)
        if value is None:
            raise ConfigurationError(f"Missing config value for {key}")
        return value

    try:
        root = int(require(CONFIG_VERIFIED_ROOT))
        depth = int(require(CONFIG_MERKLE_DEPTH))
        threshold = int(require(CONFIG_MIN_THRESHOLD))
        gen_hash = values.get(CONFIG_GENERATION_HASH)
        generation_hash = int(gen_hash) if gen_hash is not None else None
        version = int(values.get(CONFIG_VERSION, "0"))
    except ValueError as exc:
        raise ConfigurationError(f"Invalid published config: {exc}") from exc

    if not is_field_element(root):
        raise ConfigurationError(f"Invalid {CONFIG_VERIFIED_ROOT} value: {root}")
    if not 0 < depth <= MAX_MERKLE_DEPTH:
        raise ConfigurationError(f"Invalid {CONFIG_MERKLE_DEPTH} value: {depth}")
    if threshold <= 0:
        raise ConfigurationError(f"Invalid {CONFIG_MIN_THRESHOLD} value: {threshold}")

    return PublishedConfig(
        verified_root=root,
        merkle_depth=depth,
        min_threshold=threshold,
        generation_config_hash=generation_hash,
        version=version,
    )


class ConfigStore:
    """Read and publish the config surface."""

    def __init__(self, store: Store) -> None:
        self._store = store

    def current(self, session: Session | None = None) -> PublishedConfig:
        if session is not None:
            return parse_config(Store.read_config(session))
        with self._store.session() as own:
            return parse_config(Store.read_config(own))

    def publish(
        self,
        verified_root: int,
        merkle_depth: int,
        min_threshold: int,
        generation_hash: int | None = None,
    ) -> PublishedConfig:
        """
        Publish a new config version.

        Raises:
            ConfigurationError: Invalid values
        """
        with self._store.session() as session:
            existing = Store.read_config(session)
            try:
                version = int(existing.get(CONFIG_VERSION, "0")) + 1
            except ValueError as exc:
                raise ConfigurationError(f"Invalid stored config version: {exc}") from exc
            values = {
                CONFIG_VERIFIED_ROOT: str(verified_root),
                CONFIG_MERKLE_DEPTH: str(merkle_depth),
                CONFIG_MIN_THRESHOLD: str(min_threshold),
                CONFIG_VERSION: str(version),
            }
            if generation_hash is not None:
                values[CONFIG_GENERATION_HASH] = str(generation_hash)
            elif CONFIG_GENERATION_HASH in existing:
                values[CONFIG_GENERATION_HASH] = existing[CONFIG_GENERATION_HASH]

            config = parse_config(values)
            for key, value in values.items():
                Store.write_config(session, key, value)

        logger.info(
            "Published config v%d: root=%s depth=%d min_threshold=%d",
            config.version,
            config.verified_root,
            config.merkle_depth,
            config.min_threshold,
        )
        return config
