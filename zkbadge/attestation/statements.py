"""
Proof kinds and their public-signal layouts.

Each circuit emits its public signals in a fixed order. The registry maps
positions to field names and the decoded record type.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Sequence, Tuple, Type, Union

from .config import (
    FIELD_MODULUS,
    GENERATION_NAMES,
    SCOPE_GENERATION,
    SCOPE_SOCIAL,
)
from .exceptions import FormatError

_DECIMAL = re.compile(r"^[0-9]+$")
MAX_SIGNAL_DIGITS = 80


class ProofKind(Enum):
    """Proof kinds accepted by the verifier."""

    SOCIAL = "social"
    GENERATION = "generation"


@dataclass(frozen=True)
class SocialSignals:
    is_qualified: int
    claim_hash: int
    identity: int
    nonce: int
    root: int
    min_threshold: int

    kind = ProofKind.SOCIAL

    @property
    def qualified(self) -> bool:
        return self.is_qualified == 1


@dataclass(frozen=True)
class GenerationSignals:
    is_member: int
    claim_hash: int
    birth_year_commitment: int
    identity: int
    nonce: int
    config_hash: int
    target_generation_id: int

    kind = ProofKind.GENERATION

    @property
    def qualified(self) -> bool:
        return self.is_member == 1

    @property
    def generation_name(self) -> str:
        return GENERATION_NAMES[self.target_generation_id]


TypedSignals = Union[SocialSignals, GenerationSignals]


@dataclass(frozen=True)
class SignalLayout:
    """
    Public-signal contract for one proof kind.

    Attributes:
        kind: Proof kind
        fields: Record field name per signal position
        record: Decoded record type
        nonce_scope: Nonce scope the proof must consume
        description: Human-readable statement
    """

    kind: ProofKind
    fields: Tuple[str, ...]
    record: Type[Any]
    nonce_scope: str
    description: str

    @property
    def length(self) -> int:
        return len(self.fields)


SIGNAL_LAYOUTS: Dict[ProofKind, SignalLayout] = {
    ProofKind.SOCIAL: SignalLayout(
        kind=ProofKind.SOCIAL,
        fields=("is_qualified", "claim_hash", "identity", "nonce", "root", "min_threshold"),
        record=SocialSignals,
        nonce_scope=SCOPE_SOCIAL,
        description="At least min_threshold related identities are in the verified set",
    ),
    ProofKind.GENERATION: SignalLayout(
        kind=ProofKind.GENERATION,
        fields=(
            "is_member",
            "claim_hash",
            "birth_year_commitment",
            "identity",
            "nonce",
            "config_hash",
            "target_generation_id",
        ),
        record=GenerationSignals,
        nonce_scope=SCOPE_GENERATION,
        description="Committed birth year falls in the target generation range",
    ),
}


def get_layout(kind: Union[ProofKind, str]) -> SignalLayout:
    """
    Raises:
        FormatError: Unknown proof kind
    """
    try:
        kind = ProofKind(kind) if not isinstance(kind, ProofKind) else kind
    except ValueError as exc:
        raise FormatError(f"Unknown proof kind: {kind!r}") from exc
    return SIGNAL_LAYOUTS[kind]


def parse_field_element(value: Any, label: str) -> int:
    """
    Parse a decimal string or int into a field element.

    Raises:
        FormatError: Not a canonical field element
    """
    if isinstance(value, bool):
        raise FormatError(f"{label} must be a decimal string or int")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        if len(value) > MAX_SIGNAL_DIGITS or not _DECIMAL.match(value):
            raise FormatError(f"{label} must be a decimal string")
        parsed = int(value)
    else:
        raise FormatError(f"{label} must be a decimal string or int")
    if not 0 <= parsed < FIELD_MODULUS:
        raise FormatError(f"{label} is outside the scalar field")
    return parsed


def normalize_signals(kind: Union[ProofKind, str], public_signals: Any) -> List[int]:
    """
    Check shape and range of a public-signal vector.

    Raises:
        FormatError: Wrong container, wrong length or bad element
    """
    layout = get_layout(kind)
    if not isinstance(public_signals, (list, tuple)):
        raise FormatError("public signals must be a list")
    if len(public_signals) != layout.length:
        raise FormatError(
            f"{layout.kind.value} proof expects {layout.length} public signals, "
            f"got {len(public_signals)}"
        )
    return [
        parse_field_element(value, f"publicSignals[{idx}]")
        for idx, value in enumerate(public_signals)
    ]


def decode_signals(kind: Union[ProofKind, str], public_signals: Sequence[Any]) -> TypedSignals:
    """Validate and decode public signals into the kind's record."""
    layout = get_layout(kind)
    values = normalize_signals(layout.kind, public_signals)
    record = layout.record(**dict(zip(layout.fields, values)))

    if isinstance(record, GenerationSignals):
        if record.target_generation_id >= len(GENERATION_NAMES):
            raise FormatError(
                f"target_generation_id {record.target_generation_id} out of range"
            )
    return record
