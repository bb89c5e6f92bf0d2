"""Tests for public-signal layouts and decoding"""

import pytest

from zkbadge.attestation.config import FIELD_MODULUS, SCOPE_GENERATION, SCOPE_SOCIAL
from zkbadge.attestation.exceptions import FormatError
from zkbadge.attestation.statements import (
    GenerationSignals,
    ProofKind,
    SocialSignals,
    decode_signals,
    get_layout,
    normalize_signals,
    parse_field_element,
)


def test_social_layout_decodes_in_order():
    """Social signals map positions to named fields"""
    signals = decode_signals("social", ["1", "55", "1000", "42", "777", "2"])

    assert isinstance(signals, SocialSignals)
    assert signals.is_qualified == 1
    assert signals.claim_hash == 55
    assert signals.identity == 1000
    assert signals.nonce == 42
    assert signals.root == 777
    assert signals.min_threshold == 2
    assert signals.qualified


def test_generation_layout_decodes_in_order():
    """Generation signals carry a target generation id"""
    signals = decode_signals(
        ProofKind.GENERATION, ["1", "55", "99", "1000", "42", "31337", "1"]
    )

    assert isinstance(signals, GenerationSignals)
    assert signals.birth_year_commitment == 99
    assert signals.identity == 1000
    assert signals.config_hash == 31337
    assert signals.generation_name == "Millennial"


def test_unqualified_flag():
    signals = decode_signals("social", ["0", "55", "1000", "42", "777", "2"])
    assert not signals.qualified


def test_generation_id_out_of_range():
    with pytest.raises(FormatError):
        decode_signals("generation", ["1", "55", "99", "1000", "42", "31337", "5"])


def test_wrong_length_rejected():
    with pytest.raises(FormatError):
        decode_signals("social", ["1", "2", "3"])


def test_non_list_rejected():
    with pytest.raises(FormatError):
        normalize_signals("social", "1,2,3,4,5,6")


def test_unknown_kind_rejected():
    with pytest.raises(FormatError):
        get_layout("age")


@pytest.mark.parametrize("value", ["-1", "0x10", "1.5", "", " 1", True, None, 1.0])
def test_non_decimal_elements_rejected(value):
    with pytest.raises(FormatError):
        parse_field_element(value, "signal")


def test_field_bound_enforced():
    assert parse_field_element(str(FIELD_MODULUS - 1), "signal") == FIELD_MODULUS - 1
    with pytest.raises(FormatError):
        parse_field_element(str(FIELD_MODULUS), "signal")


def test_int_elements_accepted():
    assert normalize_signals("social", [1, 2, 3, 4, 5, 6]) == [1, 2, 3, 4, 5, 6]


def test_layout_nonce_scopes():
    assert get_layout("social").nonce_scope == SCOPE_SOCIAL
    assert get_layout("generation").nonce_scope == SCOPE_GENERATION
    assert get_layout(ProofKind.GENERATION).length == 7
