"""
End-to-end badge issuance scenarios.

Exercises the full flow (context, inclusion proofs, circuit input, verify,
bind) through ``BadgeService`` with an accepting Groth16 backend in place of
the real verifier.
"""

import threading

import pytest

from zkbadge.attestation.exceptions import ConfigurationError, NonceInvalid, ThresholdNotMet
from zkbadge.attestation.merkle import verify_path
from zkbadge.attestation.service import BadgeService
from zkbadge.attestation.snark import ProofVerifier
from zkbadge.attestation.statements import ProofKind
from zkbadge.attestation.store import Store

DEPTH = 6
N_MAX = 8
THRESHOLD = 2
IDS = {"p": 5000, "a": 5001, "b": 5002, "c": 5003, "q": 5004}


class _AcceptingBackend:
    def verify(self, verification_key, public_signals, proof):
        return True


def _service(url="sqlite://"):
    store = Store(url)
    for key, handle in (("p", "prover"), ("a", "alice"), ("b", "bob"), ("c", "carol"), ("q", "quinn")):
        store.add_principal(key, handle, IDS[key], human_status="verified")
    verifier = ProofVerifier(_AcceptingBackend(), lambda kind: {"kind": kind.value})
    service = BadgeService(store, verifier, DEPTH, THRESHOLD, N_MAX)
    service.publish_config()
    return service


def _social_signals(context, qualified, identity=None, claim_hash=77):
    return [
        str(qualified),
        str(claim_hash),
        identity or context["identity"],
        context["session_nonce"],
        context["verified_root"],
        str(context["min_threshold"]),
    ]


def test_two_verified_relations_qualify():
    """Verified {A,B,C}, P relates to {A,B}, threshold 2"""
    service = _service()
    service.store.follow("p", "a")
    service.store.follow("p", "b")

    context = service.social_context("p")
    circuit = service.pack_input("p")

    assert circuit.presence == (1, 1) + (0,) * (N_MAX - 2)
    root = int(context["verified_root"])
    for bundle in service.proof_data("p").bundles():
        assert verify_path(bundle, root)

    witness = circuit.to_circuit_json(
        IDS["p"], int(context["session_nonce"]), root, context["min_threshold"]
    )
    assert witness["verifiedRoot"] == context["verified_root"]

    claim = service.verify("p", "social", {"pi_a": []}, _social_signals(context, 1))

    assert claim.kind == "social"
    assert service.store.get_principal("p").social_level == THRESHOLD


def test_single_relation_does_not_qualify():
    """P relates to {A} only; the unqualified proof leaves the nonce usable"""
    service = _service()
    service.store.follow("p", "a")

    context = service.social_context("p")
    assert service.pack_input("p").count == 1

    with pytest.raises(ThresholdNotMet):
        service.verify("p", ProofKind.SOCIAL, {"pi_a": []}, _social_signals(context, 0))

    assert service.nonces.peek("social", int(context["session_nonce"]))
    assert service.store.count_claims() == 0


def test_replayed_proof_rejected():
    service = _service()
    context = service.social_context("p")
    signals = _social_signals(context, 1)
    service.verify("p", "social", {"pi_a": []}, signals)

    with pytest.raises(NonceInvalid):
        service.verify("p", "social", {"pi_a": []}, signals)


def test_concurrent_principals_share_one_nonce(tmp_path):
    """Two principals racing on one nonce produce at most one claim"""
    service = _service(f"sqlite:///{tmp_path / 'badges.db'}")
    context = service.social_context("p")
    submissions = {
        "p": _social_signals(context, 1, identity=str(IDS["p"])),
        "q": _social_signals(context, 1, identity=str(IDS["q"])),
    }
    outcomes = {}
    barrier = threading.Barrier(2)

    def submit(principal_id):
        barrier.wait()
        try:
            service.verify(principal_id, "social", {"pi_a": []}, submissions[principal_id])
            outcomes[principal_id] = "bound"
        except NonceInvalid:
            outcomes[principal_id] = "rejected"

    threads = [threading.Thread(target=submit, args=(pid,)) for pid in submissions]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes.values()) == ["bound", "rejected"]
    assert service.store.count_claims("social") == 1


def test_rebuild_without_publish_keeps_published_root():
    service = _service()
    service.store.follow("p", "a")
    service.store.follow("p", "b")
    published = service.published()
    service.store.add_principal("d", "dora", 5005, human_status="verified")
    service.store.follow("p", "d")

    new_root = service.rebuild()

    assert new_root != published.verified_root
    assert service.published() == published

    context = service.social_context("p")
    assert context["verified_root"] == str(published.verified_root)

    # paths come from the published tree, which does not hold dora
    bundles = service.proof_data("p").bundles()
    assert len(bundles) == 2
    assert all(verify_path(b, published.verified_root) for b in bundles)
    assert service.pack_input("p").count == 2
    service.verify("p", "social", {"pi_a": []}, _social_signals(context, 1))


def test_proof_data_needs_snapshot_for_published_root():
    service = _service()
    service.store.follow("p", "a")
    other = BadgeService(service.store, service.verifier, DEPTH, THRESHOLD, N_MAX)
    service.store.add_principal("d", "dora", 5005, human_status="verified")
    other.publish_config()

    with pytest.raises(ConfigurationError):
        service.proof_data("p")

    service.rebuild()
    root = service.published().verified_root
    assert all(verify_path(b, root) for b in service.proof_data("p").bundles())


def test_publish_advances_config():
    service = _service()
    first = service.published()
    service.store.add_principal("d", "dora", 5005, human_status="verified")

    second = service.publish_config(min_threshold=3)

    assert second.version == first.version + 1
    assert second.verified_root != first.verified_root
    assert second.min_threshold == 3


def test_generation_flow():
    service = _service()
    context = service.generation_context("p")

    assert [g["name"] for g in context["generations"]][:2] == ["Gen Z", "Millennial"]

    signals = ["1", "88", "4242", context["identity"], context["session_nonce"],
               context["config_hash"], "1"]
    claim = service.verify("p", "generation", {"pi_a": []}, signals)

    assert claim.kind == "generation"
    assert service.store.get_principal("p").generation_id == 1


def test_aggregate_context_issues_aggregate_nonce():
    service = _service()
    context = service.aggregate_context("p")

    assert service.nonces.peek("aggregate", int(context["session_nonce"]))
    assert context["social"]["min_threshold"] == THRESHOLD
    assert context["generation_config_hash"] is not None
