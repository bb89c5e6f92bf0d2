"""Tests for packing inclusion proofs into the fixed-arity circuit input"""

import pytest

from zkbadge.attestation.circuit_input import pack
from zkbadge.attestation.config import FIELD_MODULUS
from zkbadge.attestation.exceptions import CapacityExceeded, DuplicateLeaf, FormatError
from zkbadge.attestation.merkle import ProofBundle, build_snapshot

DEPTH = 4


def _bundles(count):
    snapshot = build_snapshot(range(1, count + 1), DEPTH)
    return snapshot, [snapshot.prove_inclusion(leaf) for leaf in snapshot.leaves]


class TestPack:
    def test_present_slots_then_padding(self):
        snapshot, bundles = _bundles(2)
        circuit = pack(bundles, 4, DEPTH, snapshot.zero_leaf)

        assert circuit.presence == (1, 1, 0, 0)
        assert circuit.count == 2
        assert circuit.n_max == 4
        assert circuit.leaves[:2] == tuple(b.leaf for b in bundles)
        assert circuit.leaves[2:] == (snapshot.zero_leaf, snapshot.zero_leaf)
        assert circuit.siblings[3] == (snapshot.zero_leaf,) * DEPTH
        assert circuit.path_bits[3] == (0,) * DEPTH

    def test_empty_input_is_all_padding(self):
        snapshot = build_snapshot([], DEPTH)
        circuit = pack([], 3, DEPTH, snapshot.zero_leaf)

        assert circuit.presence == (0, 0, 0)
        assert circuit.count == 0

    def test_strict_capacity_exceeded(self):
        snapshot, bundles = _bundles(5)
        with pytest.raises(CapacityExceeded):
            pack(bundles, 4, DEPTH, snapshot.zero_leaf)

    def test_capacity_exceeded_is_format_error(self):
        assert issubclass(CapacityExceeded, FormatError)
        assert issubclass(DuplicateLeaf, FormatError)

    def test_non_strict_truncates(self):
        snapshot, bundles = _bundles(5)
        circuit = pack(bundles, 4, DEPTH, snapshot.zero_leaf, strict=False)

        assert circuit.presence == (1, 1, 1, 1)
        assert circuit.leaves == tuple(b.leaf for b in bundles[:4])

    def test_duplicate_leaf_rejected(self):
        snapshot, bundles = _bundles(2)
        with pytest.raises(DuplicateLeaf):
            pack([bundles[0], bundles[1], bundles[0]], 4, DEPTH, snapshot.zero_leaf)

    def test_short_paths_are_repadded(self):
        snapshot, bundles = _bundles(1)
        short = ProofBundle(bundles[0].leaf, bundles[0].siblings[:2], bundles[0].path_bits[:2])
        circuit = pack([short], 2, DEPTH, snapshot.zero_leaf)

        assert circuit.siblings[0] == bundles[0].siblings[:2] + (snapshot.zero_leaf,) * 2
        assert circuit.path_bits[0] == bundles[0].path_bits[:2] + (0, 0)

    def test_long_paths_are_truncated(self):
        snapshot, bundles = _bundles(1)
        circuit = pack(bundles, 2, 2, snapshot.zero_leaf)

        assert len(circuit.siblings[0]) == 2
        assert len(circuit.siblings[1]) == 2

    def test_bad_path_bit_rejected(self):
        snapshot, bundles = _bundles(1)
        bad = ProofBundle(bundles[0].leaf, bundles[0].siblings, (2,) * DEPTH)
        with pytest.raises(FormatError):
            pack([bad], 2, DEPTH, snapshot.zero_leaf)

    def test_non_field_leaf_rejected(self):
        snapshot, bundles = _bundles(1)
        bad = ProofBundle(FIELD_MODULUS, bundles[0].siblings, bundles[0].path_bits)
        with pytest.raises(FormatError):
            pack([bad], 2, DEPTH, snapshot.zero_leaf)

    def test_invalid_shape_rejected(self):
        with pytest.raises(FormatError):
            pack([], 0, DEPTH, 0)


class TestCircuitJson:
    def test_signal_names_and_string_values(self):
        snapshot, bundles = _bundles(2)
        circuit = pack(bundles, 3, DEPTH, snapshot.zero_leaf)
        data = circuit.to_circuit_json(identity=7, nonce=42, root=snapshot.root, min_threshold=2)

        assert set(data) == {
            "selfNullifier",
            "sessionNonce",
            "verifiedRoot",
            "minVerifiedNeeded",
            "followeeLeaves",
            "followeeIsPresent",
            "merkleSiblings",
            "merklePathBits",
        }
        assert data["selfNullifier"] == "7"
        assert data["sessionNonce"] == "42"
        assert data["verifiedRoot"] == str(snapshot.root)
        assert data["followeeIsPresent"] == ["1", "1", "0"]
        assert len(data["merkleSiblings"]) == 3
        assert all(len(path) == DEPTH for path in data["merklePathBits"])
