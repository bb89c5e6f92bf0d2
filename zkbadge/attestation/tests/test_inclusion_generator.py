"""Tests for inclusion proofs over a principal's relations"""

from zkbadge.attestation.inclusion import InclusionProofGenerator
from zkbadge.attestation.merkle import build_snapshot, verify_path
from zkbadge.attestation.store import Store

DEPTH = 4
IDS = {"p": 1000, "a": 1001, "b": 1002, "c": 1003, "d": 1004}


def _store():
    store = Store("sqlite://")
    store.add_principal("p", "prover", IDS["p"], human_status="verified")
    store.add_principal("a", "alice", IDS["a"], human_status="verified")
    store.add_principal("b", "bob", IDS["b"], human_status="verified")
    store.add_principal("c", "carol", IDS["c"], human_status="verified")
    store.add_principal("d", "dave", IDS["d"], human_status="pending")
    for other in ("a", "b", "d"):
        store.follow("p", other)
    return store


def _snapshot(store):
    return build_snapshot(store.verified_identities(), DEPTH)


class TestInclusionProofGenerator:
    def test_default_uses_verified_relations(self):
        store = _store()
        snapshot = _snapshot(store)
        proofs = InclusionProofGenerator(store).proofs_for("p", snapshot)

        assert proofs.count == 2
        assert set(proofs.leaves) == {
            snapshot.leaf_for(IDS["a"]),
            snapshot.leaf_for(IDS["b"]),
        }
        for bundle in proofs.bundles():
            assert verify_path(bundle, snapshot.root)

    def test_unrelated_identity_is_skipped(self):
        store = _store()
        proofs = InclusionProofGenerator(store).proofs_for(
            "p", _snapshot(store), [IDS["c"], IDS["a"]]
        )

        assert proofs.count == 1

    def test_unverified_relation_is_skipped(self):
        store = _store()
        proofs = InclusionProofGenerator(store).proofs_for("p", _snapshot(store), [IDS["d"]])

        assert proofs.count == 0
        assert proofs.to_dict()["leaves"] == []

    def test_unknown_identity_is_skipped(self):
        store = _store()
        proofs = InclusionProofGenerator(store).proofs_for("p", _snapshot(store), [424242])

        assert proofs.count == 0

    def test_order_preserved_and_duplicates_kept(self):
        store = _store()
        snapshot = _snapshot(store)
        claimed = [IDS["b"], IDS["a"], IDS["b"]]
        proofs = InclusionProofGenerator(store).proofs_for("p", snapshot, claimed)

        assert proofs.leaves == tuple(snapshot.leaf_for(i) for i in claimed)

    def test_identity_missing_from_snapshot_is_skipped(self):
        store = _store()
        stale = _snapshot(store)
        store.add_principal("e", "erin", 1005, human_status="verified")
        store.follow("p", "e")

        proofs = InclusionProofGenerator(store).proofs_for("p", stale, [1005, IDS["a"]])

        assert proofs.leaves == (stale.leaf_for(IDS["a"]),)

    def test_paths_have_snapshot_depth(self):
        store = _store()
        proofs = InclusionProofGenerator(store).proofs_for("p", _snapshot(store))

        for siblings, bits in zip(proofs.siblings, proofs.path_indices):
            assert len(siblings) == DEPTH
            assert len(bits) == DEPTH

    def test_to_dict_shape(self):
        store = _store()
        data = InclusionProofGenerator(store).proofs_for("p", _snapshot(store)).to_dict()

        assert set(data) == {"leaves", "siblings", "pathIndices", "count"}
        assert data["count"] == 2
        assert all(isinstance(leaf, str) for leaf in data["leaves"])
